from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import Response

from asset_register_app.core.env import TRUE_VALUES
from asset_register_app.core.errors import TokenNotFoundError
from asset_register_app.imports.models import EntityType
from asset_register_app.imports.service import BulkImportService
from asset_register_app.imports.templates import XLSX_MEDIA_TYPE, render_template_csv, render_template_workbook
from asset_register_app.web.core.identity import resolve_request_user_id
from asset_register_app.web.http.errors import ApiError

router = APIRouter(prefix="/api/bulk")


def _service(request: Request) -> BulkImportService:
    return request.app.state.bulk_import_service


def _form_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in TRUE_VALUES


def _form_text(value: Any) -> str:
    if value is None or hasattr(value, "read"):
        return ""
    return str(value).strip()


def _attachment(content: bytes, *, file_name: str, media_type: str) -> Response:
    safe_name = file_name.replace('"', "").replace("\r", "").replace("\n", "") or "download"
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"'},
    )


async def _read_upload_bytes(upload: Any) -> bytes:
    if upload is None or not hasattr(upload, "read"):
        return b""
    return await upload.read()


async def _request_payload(request: Request) -> dict[str, Any]:
    content_type = str(request.headers.get("content-type", "")).lower()
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError as exc:
            raise ApiError(status_code=400, code="BAD_REQUEST", message="Request body is not valid JSON.") from exc
        if not isinstance(body, dict):
            raise ApiError(status_code=400, code="BAD_REQUEST", message="Request body must be a JSON object.")
        return body
    form = await request.form()
    return {key: form.get(key) for key in form.keys()}


@router.get("/template")
def download_template(type: str = "", format: str = "xlsx"):
    entity_type = EntityType.parse(type)
    if str(format or "").strip().lower() == "csv":
        file_name, content = render_template_csv(entity_type)
        return _attachment(content, file_name=file_name, media_type="text/csv")
    file_name, content = render_template_workbook(entity_type)
    return _attachment(content, file_name=file_name, media_type=XLSX_MEDIA_TYPE)


@router.post("/dry-run")
async def dry_run(request: Request):
    service = _service(request)
    form = await request.form()
    upload = form.get("file")
    if upload is None or not hasattr(upload, "filename"):
        raise ApiError(status_code=400, code="BAD_REQUEST", message="No file uploaded.")
    file_name = str(getattr(upload, "filename", "") or "").strip()
    file_bytes = await _read_upload_bytes(upload)

    result = service.dry_run(
        entity_type=_form_text(form.get("type")),
        mode=_form_text(form.get("mode")) or "add",
        archive_missing=_form_flag(form.get("archiveMissing")),
        vessel_id=_form_text(form.get("vesselId")),
        file_bytes=file_bytes,
        file_name=file_name,
        user_id=resolve_request_user_id(request),
    )
    report = result.report
    payload: dict[str, Any] = {
        "fileToken": result.token,
        "columns": list(report.columns),
        "summary": report.summary.to_dict(),
        "rows": report.preview(service.config.preview_row_limit),
        "totalRows": len(report.rows),
    }
    if report.summary.errors > 0:
        payload["errorReportUrl"] = str(request.url_for("dry_run_error_report", token=result.token).path)
    return payload


@router.get("/dry-run/{token}/errors.csv", name="dry_run_error_report")
def dry_run_error_report(token: str, request: Request):
    try:
        content = _service(request).error_report_csv(token)
    except TokenNotFoundError as exc:
        raise ApiError(status_code=404, code="NOT_FOUND", message="Error report not found.") from exc
    return _attachment(content, file_name="import_errors.csv", media_type="text/csv")


@router.delete("/dry-run/{token}")
def discard_dry_run(token: str, request: Request):
    _service(request).discard_dry_run(token)
    return {"ok": True}


@router.post("/import")
async def commit_import(request: Request):
    payload = await _request_payload(request)
    token = _form_text(payload.get("fileToken"))
    if not token:
        raise ApiError(status_code=400, code="BAD_REQUEST", message="fileToken is required.")
    result = _service(request).commit(
        token,
        vessel_id=_form_text(payload.get("vesselId")),
        user_id=resolve_request_user_id(request),
        entity_type=_form_text(payload.get("type")) or None,
        mode=_form_text(payload.get("mode")) or None,
    )
    body = result.outcome.to_dict()
    body["historyId"] = result.history_id
    return body


@router.get("/history")
def import_history(request: Request, type: str = "", limit: int | None = None, offset: int = 0):
    page = _service(request).history(type or None, limit=limit, offset=offset)
    return page.to_dict()


@router.get("/history/{history_id}/{file_kind}")
def import_history_file(history_id: str, file_kind: str, request: Request):
    history_file = _service(request).history_file(history_id, file_kind)
    if history_file is None:
        raise ApiError(status_code=404, code="NOT_FOUND", message="File not found.")
    return _attachment(history_file.data, file_name=history_file.file_name, media_type=history_file.media_type)
