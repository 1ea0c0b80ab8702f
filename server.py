"""FastAPI frontend for the emergency rental assistance wizard."""

from __future__ import annotations

import logging
import os
import re
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, ConfigDict, Field

from rental_assist.models.application import CORE_SECTIONS
from rental_assist.service import ApplicationService, create_service
from rental_assist.utils.config import Config
from rental_assist.utils.errors import (
    ApplicationStateError,
    ErrorType,
    SectionValidationError,
)
from rental_assist.utils.logging import clear_context, set_context, setup_logging


APP_TITLE = "Emergency Rental Assistance"
CONFIG_PATH = os.getenv("RENTAL_ASSIST_CONFIG", "config.yaml")
SESSION_COOKIE = "sid"
MAX_SESSION_ID_LENGTH = 64
TEMPLATE_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates")

logger = logging.getLogger(__name__)


@dataclass
class InputDef:
    """One input on a core section page."""

    name: str
    label: str
    kind: str = "text"
    required: bool = True


@dataclass
class SectionPage:
    section: str
    path: str
    title: str
    next_path: str
    inputs: List[InputDef]


RELATIONS = [("spouse", "Spouse or partner"), ("child", "Child"), ("parent", "Parent"), ("other", "Other")]
AGE_RANGES = [("0-17", "Under 18"), ("18-61", "18 to 61"), ("62+", "62 or older")]
INCOME_BANDS = [("none", "No income"), ("low", "Under $25,000"), ("mid", "$25,000 to $50,000"), ("high", "Over $50,000")]
MEMBER_ROWS = 4

SECTION_PAGES: Dict[str, SectionPage] = {
    "applicant": SectionPage("applicant", "/apply", "About you", "/apply/housing", [
        InputDef("firstName", "First name"),
        InputDef("lastName", "Last name"),
        InputDef("dob", "Date of birth", kind="date"),
        InputDef("phone", "Phone", kind="tel"),
        InputDef("email", "Email", kind="email"),
        InputDef("language", "Preferred language", required=False),
    ]),
    "housing": SectionPage("housing", "/apply/housing", "Your home", "/apply/household", [
        InputDef("address1", "Street address"),
        InputDef("address2", "Apartment or unit", required=False),
        InputDef("city", "City"),
        InputDef("state", "State (2 letters)"),
        InputDef("zip", "ZIP code"),
        InputDef("monthlyRent", "Monthly rent ($)", kind="number"),
        InputDef("monthsBehind", "Months behind on rent", kind="number"),
        InputDef("landlordName", "Landlord name", required=False),
        InputDef("landlordPhone", "Landlord phone", kind="tel", required=False),
    ]),
    "household": SectionPage("household", "/apply/household", "Your household", "/apply/eligibility", [
        InputDef("size", "Number of people in your household", kind="number"),
    ]),
    "eligibility": SectionPage("eligibility", "/apply/eligibility", "Eligibility", "/apply/dynamic", [
        InputDef("hardship", "I am experiencing financial hardship", kind="checkbox"),
        InputDef("typedSignature", "Type your full name as a signature"),
    ]),
}

_MEMBER_KEY = re.compile(r"^members\.(\d+)\.(relation|ageRange|incomeBand)$")


app = FastAPI(title=APP_TITLE)
templates = Jinja2Templates(directory=TEMPLATE_DIR)

_service: Optional[ApplicationService] = None
_service_lock = threading.Lock()


def get_service() -> ApplicationService:
    """Load configuration and build the service on first use."""
    global _service

    if _service is None:
        with _service_lock:
            if _service is None:
                config = Config.load(CONFIG_PATH)
                setup_logging(
                    level=config.logging.level,
                    log_format=config.logging.format,
                    log_file=config.logging.file or None,
                )
                logger.info(
                    f"Configuration loaded: region={config.aws_region}, "
                    f"model={config.bedrock.model_id}, storage={config.storage.backend}"
                )
                _service = create_service(config)
    return _service


def session_id(request: Request) -> str:
    return request.state.session_id


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    max_fields: Optional[int] = Field(None, alias="maxFields", ge=1)


class AnswersRequest(BaseModel):
    answers: Dict[str, Any] = Field(default_factory=dict)


@app.middleware("http")
async def session_cookie(request: Request, call_next):
    sid = request.cookies.get(SESSION_COOKIE) or ""
    issued = False
    if not sid or len(sid) > MAX_SESSION_ID_LENGTH:
        sid = str(uuid.uuid4())
        issued = True
    request.state.session_id = sid
    request.state.session_cleared = False

    set_context(session=sid[:8])
    try:
        response = await call_next(request)
    finally:
        clear_context()

    if issued and not request.state.session_cleared:
        response.set_cookie(SESSION_COOKIE, sid, httponly=True, samesite="lax", path="/")
    return response


def _is_api(request: Request) -> bool:
    return request.url.path.startswith("/api/")


@app.exception_handler(ApplicationStateError)
async def application_state_error(request: Request, exc: ApplicationStateError) -> Response:
    status_code = 404 if exc.error_type == ErrorType.APPLICATION_NOT_FOUND else 409
    if _is_api(request):
        return JSONResponse({"error": exc.to_dict()}, status_code=status_code)
    if exc.error_type == ErrorType.APPLICATION_NOT_FOUND:
        return RedirectResponse(url="/apply", status_code=303)
    return templates.TemplateResponse(
        request,
        "message.html",
        {"title": APP_TITLE, "heading": "We can't do that yet", "message": exc.context.message,
         "fallback": exc.context.fallback_action},
        status_code=status_code,
    )


@app.exception_handler(SectionValidationError)
async def section_validation_error(request: Request, exc: SectionValidationError) -> JSONResponse:
    return JSONResponse({"error": exc.to_dict(), "fields": exc.field_errors}, status_code=422)


def _section_values(section: str, form: Any) -> Dict[str, Any]:
    """Turn posted section form data into the section's input shape."""
    if section == "eligibility":
        return {
            "hardship": "hardship" in form,
            "typedSignature": form.get("typedSignature", ""),
        }

    values: Dict[str, Any] = {
        item.name: form.get(item.name, "") for item in SECTION_PAGES[section].inputs
    }
    if section == "household":
        rows: Dict[int, Dict[str, str]] = {}
        for key, value in form.multi_items():
            match = _MEMBER_KEY.match(key)
            if match:
                rows.setdefault(int(match.group(1)), {})[match.group(2)] = str(value).strip()
        members = [rows[index] for index in sorted(rows) if any(rows[index].values())]
        if members:
            values["members"] = members
    return values


def _section_context(
    page: SectionPage,
    values: Dict[str, Any],
    errors: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    return {
        "title": APP_TITLE,
        "page": page,
        "pages": [SECTION_PAGES[name] for name in CORE_SECTIONS],
        "values": values,
        "errors": errors or {},
        "member_rows": MEMBER_ROWS,
        "relations": RELATIONS,
        "age_ranges": AGE_RANGES,
        "income_bands": INCOME_BANDS,
    }


def _show_section(request: Request, service: ApplicationService, sid: str, section: str) -> HTMLResponse:
    page = SECTION_PAGES[section]
    record = service.get_application(sid)
    values = dict(record.core.get(section, {})) if record is not None else {}
    return templates.TemplateResponse(request, "section.html", _section_context(page, values))


async def _save_section(request: Request, service: ApplicationService, sid: str, section: str) -> Response:
    page = SECTION_PAGES[section]
    form = await request.form()
    values = _section_values(section, form)
    try:
        service.save_section(sid, section, values)
    except SectionValidationError as exc:
        return templates.TemplateResponse(
            request,
            "section.html",
            _section_context(page, values, exc.field_errors),
            status_code=422,
        )
    return RedirectResponse(url=page.next_path, status_code=303)


@app.get("/", response_class=HTMLResponse)
async def index(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> HTMLResponse:
    record = service.get_application(sid)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "title": APP_TITLE,
            "record": record,
            "status": service.core_status(record),
            "pages": [SECTION_PAGES[name] for name in CORE_SECTIONS],
        },
    )


@app.get("/apply", response_class=HTMLResponse)
async def applicant_page(request: Request, service: ApplicationService = Depends(get_service),
                         sid: str = Depends(session_id)) -> HTMLResponse:
    return _show_section(request, service, sid, "applicant")


@app.post("/apply")
async def applicant_save(request: Request, service: ApplicationService = Depends(get_service),
                         sid: str = Depends(session_id)) -> Response:
    return await _save_section(request, service, sid, "applicant")


@app.get("/apply/housing", response_class=HTMLResponse)
async def housing_page(request: Request, service: ApplicationService = Depends(get_service),
                       sid: str = Depends(session_id)) -> HTMLResponse:
    return _show_section(request, service, sid, "housing")


@app.post("/apply/housing")
async def housing_save(request: Request, service: ApplicationService = Depends(get_service),
                       sid: str = Depends(session_id)) -> Response:
    return await _save_section(request, service, sid, "housing")


@app.get("/apply/household", response_class=HTMLResponse)
async def household_page(request: Request, service: ApplicationService = Depends(get_service),
                         sid: str = Depends(session_id)) -> HTMLResponse:
    return _show_section(request, service, sid, "household")


@app.post("/apply/household")
async def household_save(request: Request, service: ApplicationService = Depends(get_service),
                         sid: str = Depends(session_id)) -> Response:
    return await _save_section(request, service, sid, "household")


@app.get("/apply/eligibility", response_class=HTMLResponse)
async def eligibility_page(request: Request, service: ApplicationService = Depends(get_service),
                           sid: str = Depends(session_id)) -> HTMLResponse:
    return _show_section(request, service, sid, "eligibility")


@app.post("/apply/eligibility")
async def eligibility_save(request: Request, service: ApplicationService = Depends(get_service),
                           sid: str = Depends(session_id)) -> Response:
    return await _save_section(request, service, sid, "eligibility")


@app.get("/apply/review")
async def review_page() -> RedirectResponse:
    return RedirectResponse(url="/apply/dynamic", status_code=307)


def _dynamic_context(
    request: Request,
    service: ApplicationService,
    sid: str,
    live_answers: Optional[Dict[str, Any]] = None,
    errors: Optional[Dict[str, str]] = None,
    generation: Any = None,
    view: Optional[str] = None,
) -> Dict[str, Any]:
    record = service.get_application(sid)
    renderer = service.renderer_for(record)
    return {
        "title": APP_TITLE,
        "record": record,
        "status": service.core_status(record),
        "prompt": (record.prompt if record is not None and record.prompt else service.generator.default_prompt),
        "max_fields": service.generator.max_fields,
        "spec": renderer.spec if renderer is not None else None,
        "fields": renderer.render(live_answers, errors) if renderer is not None else [],
        "errors": errors or {},
        "generation": generation,
        "view": view,
        "export": service.build_export(record) if record is not None and view == "json" else None,
    }


@app.get("/apply/dynamic", response_class=HTMLResponse)
async def dynamic_page(
    request: Request,
    view: Optional[str] = None,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> HTMLResponse:
    return templates.TemplateResponse(request, "dynamic.html", _dynamic_context(request, service, sid, view=view))


@app.post("/apply/dynamic/generate", response_class=HTMLResponse)
async def dynamic_generate(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> HTMLResponse:
    form = await request.form()
    max_fields = None
    raw_max = str(form.get("max_fields", "")).strip()
    if raw_max.isdigit() and int(raw_max) > 0:
        max_fields = int(raw_max)

    result = await service.generate_questions(sid, str(form.get("prompt", "")), max_fields)
    return templates.TemplateResponse(
        request,
        "dynamic.html",
        _dynamic_context(request, service, sid, generation=result),
        status_code=200 if result.ok else 502,
    )


@app.post("/apply/dynamic/answers")
async def dynamic_answers(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> Response:
    record = service.require_application(sid)
    renderer = service.renderer_for(record)
    if renderer is None:
        return RedirectResponse(url="/apply/dynamic", status_code=303)

    form = await request.form()
    action = form.get("action", "save")
    state = renderer.form_state_from_pairs(
        (key, value) for key, value in form.multi_items() if key != "action"
    )

    if action == "preview":
        return templates.TemplateResponse(
            request, "dynamic.html", _dynamic_context(request, service, sid, live_answers=state)
        )

    result = service.save_answers(sid, state)
    if not result.ok:
        return templates.TemplateResponse(
            request,
            "dynamic.html",
            _dynamic_context(request, service, sid, live_answers=state, errors=result.errors),
            status_code=422,
        )
    return RedirectResponse(url="/apply/dynamic?view=json", status_code=303)


@app.get("/apply/submit", response_class=HTMLResponse)
async def submit_page(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> HTMLResponse:
    record = service.get_application(sid)
    return templates.TemplateResponse(
        request,
        "submit.html",
        {"title": APP_TITLE, "record": record, "status": service.core_status(record), "error": None},
    )


@app.post("/apply/submit", response_class=HTMLResponse)
async def submit_application(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> HTMLResponse:
    form = await request.form()
    if "certify" not in form:
        record = service.get_application(sid)
        return templates.TemplateResponse(
            request,
            "submit.html",
            {"title": APP_TITLE, "record": record, "status": service.core_status(record),
             "error": "Please certify that your information is true before submitting."},
            status_code=422,
        )

    record = service.submit(sid)
    return templates.TemplateResponse(
        request,
        "submit.html",
        {"title": APP_TITLE, "record": record, "status": service.core_status(record), "error": None},
    )


@app.post("/apply/reset")
async def reset_application(
    request: Request,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> RedirectResponse:
    service.reset(sid)
    request.state.session_cleared = True
    response = RedirectResponse(url="/", status_code=303)
    response.delete_cookie(SESSION_COOKIE, path="/")
    return response


@app.get("/api/application")
async def get_application(
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    record = service.get_application(sid)
    return JSONResponse({
        "application": record.to_dict() if record is not None else None,
        "status": service.core_status(record).to_dict(),
    })


@app.post("/api/application/sections/{section}")
async def save_section(
    section: str,
    payload: Dict[str, Any],
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    if section not in CORE_SECTIONS:
        raise HTTPException(status_code=404, detail="Unknown section.")
    record = service.save_section(sid, section, payload)
    return JSONResponse({
        "application": record.to_dict(),
        "status": service.core_status(record).to_dict(),
    })


@app.post("/api/application/generate")
async def generate_questions(
    payload: Optional[GenerateRequest] = None,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    payload = payload or GenerateRequest()
    result = await service.generate_questions(sid, payload.prompt, payload.max_fields)
    body = result.to_dict()
    body["ok"] = result.ok
    return JSONResponse(body, status_code=200 if result.ok else 502)


@app.post("/api/application/answers")
async def save_answers(
    payload: AnswersRequest,
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    result = service.save_answers(sid, payload.answers)
    return JSONResponse(
        {"ok": result.ok, "answers": result.answers, "errors": result.errors, "hidden": result.hidden},
        status_code=200 if result.ok else 422,
    )


@app.post("/api/application/submit")
async def submit(
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    record = service.submit(sid)
    return JSONResponse({"application": record.to_dict()})


@app.get("/api/application/export")
async def export_application(
    service: ApplicationService = Depends(get_service),
    sid: str = Depends(session_id),
) -> JSONResponse:
    record = service.require_application(sid)
    return JSONResponse(service.build_export(record))


@app.get("/healthz")
async def healthcheck() -> Dict[str, str]:
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
