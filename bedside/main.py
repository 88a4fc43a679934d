import logging
import os
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from typing import Annotated, List

from fastapi import FastAPI, HTTPException, Path, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from bedside.care import care_records
from bedside.config import config
from bedside.days import day_book
from bedside.middleware.rate_limiter import write_limiter
from bedside.models import (
    DEFAULT_DAYS_LIMIT,
    MAX_DAYS_LIMIT,
    CareTeamMember,
    CareTeamMemberInput,
    DayAggregate,
    DayPatch,
    DaySummary,
    EventEntry,
    EventType,
    EventTypeInput,
    Medication,
    MedicationDose,
    MedicationInput,
    Metric,
    MetricInput,
    Question,
    QuestionAnswered,
    Settings,
    VitalsReading,
    check_date,
)
from bedside.settings import settings_store
from bedside.summary import render_summary

# Configure logging with rotation for production readiness
os.makedirs(config.log_dir, exist_ok=True)
log_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log_file = os.path.join(config.log_dir, 'server.log')

# 5MB per file, keep 3 backup files
rotating_handler = RotatingFileHandler(
    log_file, maxBytes=5*1024*1024, backupCount=3
)
rotating_handler.setFormatter(log_formatter)

package_logger = logging.getLogger("bedside")
package_logger.setLevel(config.log_level)
if not package_logger.handlers:
    package_logger.addHandler(rotating_handler)
    # Also log to console for development visibility
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(log_formatter)
    package_logger.addHandler(console_handler)

logger = logging.getLogger(__name__)

app = FastAPI(title="Bedside Board")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.allowed_origins if config.allowed_origins else ["*"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["*"],
)

DEFAULT_USER_ID = "default-user"
MAX_USER_ID_LENGTH = 100

IdParam = Annotated[str, Path(min_length=1, max_length=50)]
OK = {"success": True}


# --- Helpers ---

def get_user_id(request: Request) -> str:
    """Opaque per-device id sent by the client in the X-User-Id header."""
    user_id = request.headers.get("x-user-id")
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return DEFAULT_USER_ID
    return user_id


def check_write_limit(user_id: str):
    if not write_limiter.is_allowed(user_id):
        logger.warning(f"Write rate limit hit for {user_id}")
        raise HTTPException(status_code=429, detail="TOO_MANY_REQUESTS")


@contextmanager
def handle_errors(action: str):
    """Map core errors to HTTP: bad input -> 400, anything else -> 500."""
    try:
        yield
    except HTTPException:
        raise
    except ValueError as e:
        logger.warning(f"Rejected request to {action}: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error trying to {action}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to {action}")


@app.get("/health")
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# --- Settings ---

@app.get("/api/settings", response_model=Settings)
def get_settings(request: Request):
    with handle_errors("get settings"):
        return settings_store.get_settings(get_user_id(request))


@app.post("/api/settings/metrics", response_model=Metric)
def add_metric(request: Request, payload: MetricInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add metric"):
        return settings_store.add_metric(user_id, payload)


@app.put("/api/settings/metrics/{metric_id}")
def update_metric(request: Request, metric_id: IdParam, payload: MetricInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update metric"):
        settings_store.update_metric(user_id, Metric(id=metric_id, **payload.model_dump()))
        return OK


@app.delete("/api/settings/metrics/{metric_id}")
def delete_metric(request: Request, metric_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete metric"):
        settings_store.delete_metric(user_id, metric_id)
        return OK


@app.post("/api/settings/event-types", response_model=EventType)
def add_event_type(request: Request, payload: EventTypeInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add event type"):
        return settings_store.add_event_type(user_id, payload)


@app.put("/api/settings/event-types/{event_type_id}")
def update_event_type(request: Request, event_type_id: IdParam, payload: EventTypeInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update event type"):
        settings_store.update_event_type(user_id, EventType(id=event_type_id, **payload.model_dump()))
        return OK


@app.delete("/api/settings/event-types/{event_type_id}")
def delete_event_type(request: Request, event_type_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete event type"):
        settings_store.delete_event_type(user_id, event_type_id)
        return OK


# --- Days ---

@app.get("/api/days", response_model=List[str])
def list_days(request: Request, limit: int = Query(DEFAULT_DAYS_LIMIT, ge=1, le=MAX_DAYS_LIMIT)):
    with handle_errors("get days"):
        return day_book.list_days_with_data(get_user_id(request), limit)


@app.get("/api/days/{date}", response_model=DayAggregate)
def get_day(request: Request, date: str):
    with handle_errors("get day data"):
        check_date(date)
        return day_book.get_day(get_user_id(request), date)


@app.patch("/api/days/{date}", response_model=DayAggregate)
def patch_day(request: Request, date: str, payload: DayPatch):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update day data"):
        check_date(date)
        day_book.update_day(user_id, date, payload)
        return day_book.get_day(user_id, date)


@app.get("/api/days/{date}/summary", response_model=DaySummary)
def get_day_summary(request: Request, date: str):
    user_id = get_user_id(request)
    with handle_errors("build summary"):
        check_date(date)
        settings = settings_store.get_settings(user_id)
        aggregate = day_book.get_day(user_id, date)
        return DaySummary(date=date, summary=render_summary(aggregate, settings))


# --- Events ---

@app.post("/api/days/{date}/events", response_model=DayAggregate)
def add_event(request: Request, date: str, payload: EventEntry):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add event"):
        check_date(date)
        day_book.add_event(user_id, date, payload)
        return day_book.get_day(user_id, date)


@app.delete("/api/events/{event_id}")
def delete_event(request: Request, event_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete event"):
        day_book.delete_event(user_id, event_id)
        return OK


# --- Questions ---

@app.post("/api/days/{date}/questions", response_model=DayAggregate)
def add_question(request: Request, date: str, payload: Question):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add question"):
        check_date(date)
        day_book.add_question(user_id, date, payload)
        return day_book.get_day(user_id, date)


@app.patch("/api/questions/{question_id}")
def update_question(request: Request, question_id: IdParam, payload: QuestionAnswered):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update question"):
        day_book.update_question(user_id, question_id, payload.answered)
        return OK


@app.delete("/api/questions/{question_id}")
def delete_question(request: Request, question_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete question"):
        day_book.delete_question(user_id, question_id)
        return OK


# --- Vitals ---

@app.get("/api/days/{date}/vitals", response_model=List[VitalsReading])
def list_vitals(request: Request, date: str):
    with handle_errors("get vitals"):
        return care_records.list_vitals_readings(get_user_id(request), date)


@app.post("/api/days/{date}/vitals", response_model=List[VitalsReading])
def add_vitals(request: Request, date: str, payload: VitalsReading):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add vitals reading"):
        care_records.add_vitals_reading(user_id, date, payload)
        return care_records.list_vitals_readings(user_id, date)


@app.delete("/api/vitals/{reading_id}")
def delete_vitals(request: Request, reading_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete vitals reading"):
        care_records.delete_vitals_reading(user_id, reading_id)
        return OK


# --- Medications ---

@app.get("/api/medications", response_model=List[Medication])
def list_medications(request: Request):
    with handle_errors("get medications"):
        return care_records.list_medications(get_user_id(request))


@app.post("/api/medications", response_model=Medication)
def add_medication(request: Request, payload: MedicationInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add medication"):
        return care_records.add_medication(user_id, payload)


@app.put("/api/medications/{medication_id}")
def update_medication(request: Request, medication_id: IdParam, payload: MedicationInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update medication"):
        care_records.update_medication(user_id, Medication(id=medication_id, **payload.model_dump()))
        return OK


@app.delete("/api/medications/{medication_id}")
def delete_medication(request: Request, medication_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete medication"):
        care_records.delete_medication(user_id, medication_id)
        return OK


@app.get("/api/days/{date}/doses", response_model=List[MedicationDose])
def list_doses(request: Request, date: str):
    with handle_errors("get doses"):
        return care_records.list_doses(get_user_id(request), date)


@app.post("/api/days/{date}/doses", response_model=List[MedicationDose])
def record_dose(request: Request, date: str, payload: MedicationDose):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("record dose"):
        care_records.record_dose(user_id, date, payload)
        return care_records.list_doses(user_id, date)


@app.delete("/api/doses/{dose_id}")
def delete_dose(request: Request, dose_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete dose"):
        care_records.delete_dose(user_id, dose_id)
        return OK


# --- Care team ---

@app.get("/api/care-team", response_model=List[CareTeamMember])
def list_care_team(request: Request):
    with handle_errors("get care team"):
        return care_records.list_care_team(get_user_id(request))


@app.post("/api/care-team", response_model=CareTeamMember)
def add_care_team_member(request: Request, payload: CareTeamMemberInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("add care team member"):
        return care_records.add_care_team_member(user_id, payload)


@app.put("/api/care-team/{member_id}")
def update_care_team_member(request: Request, member_id: IdParam, payload: CareTeamMemberInput):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("update care team member"):
        member = CareTeamMember(
            id=member_id,
            name=payload.name,
            role=payload.role,
            icon=payload.icon,
            notes=payload.notes,
            sort_order=payload.sort_order or 0,
        )
        care_records.update_care_team_member(user_id, member)
        return OK


@app.delete("/api/care-team/{member_id}")
def delete_care_team_member(request: Request, member_id: IdParam):
    user_id = get_user_id(request)
    check_write_limit(user_id)
    with handle_errors("delete care team member"):
        care_records.delete_care_team_member(user_id, member_id)
        return OK


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.host, port=config.port)
