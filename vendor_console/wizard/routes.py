from flask import current_app, jsonify, request, send_from_directory
from werkzeug.exceptions import HTTPException

from . import wizard_bp
from .forms import FileUploadForm
from .state_machine import SaveStatus
from .wizard_definitions import WIZARDS
from .wizard_service import WizardSessionService
from ..errors import PersistenceError, SequencingError

SAVE_STATUS_CODES = {
    SaveStatus.SAVED: 200,
    SaveStatus.INVALID: 422,
    SaveStatus.UPLOAD_FAILED: 502,
    SaveStatus.PERSISTENCE_FAILED: 502,
    SaveStatus.DISCARDED: 409,
}


def _wizard_service() -> WizardSessionService:
    return WizardSessionService(current_app.extensions["wizard_sessions"], current_app.config)


@wizard_bp.errorhandler(SequencingError)
def sequencing_error(e):
    return jsonify({"error": e.message}), 409


@wizard_bp.app_errorhandler(HTTPException)
def http_error(e):
    return jsonify({"error": e.description}), e.code


@wizard_bp.get("/api/wizards")
def list_wizards():
    return jsonify([d.to_dict() for d in WIZARDS.values()])


@wizard_bp.post("/api/wizards/<wizard_name>/sessions")
def create_session(wizard_name: str):
    svc = _wizard_service()
    data = request.get_json(silent=True) or {}
    entity_id = data.get("entity_id")
    try:
        sid, machine = svc.create(wizard_name, entity_id=str(entity_id) if entity_id else None)
    except PersistenceError as e:
        return jsonify({"error": e.message}), 404
    return jsonify(svc.state(sid, machine)), 201


@wizard_bp.get("/api/wizard/sessions/<sid>")
def get_session(sid: str):
    svc = _wizard_service()
    return jsonify(svc.state(sid, svc.get(sid)))


@wizard_bp.patch("/api/wizard/sessions/<sid>/values")
def set_values(sid: str):
    svc = _wizard_service()
    machine = svc.get(sid)

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "Expected a JSON object of field values"}), 400

    try:
        svc.set_values(machine, data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(svc.state(sid, machine))


@wizard_bp.post("/api/wizard/sessions/<sid>/files/<field_name>")
def upload_file(sid: str, field_name: str):
    svc = _wizard_service()
    machine = svc.get(sid)

    form = FileUploadForm()
    if not form.validate_on_submit():
        message = next(iter(form.errors.get("file", [])), "Invalid upload")
        return jsonify({"error": message, "errors": form.errors}), 400

    try:
        svc.attach_file(machine, field_name, form.file.data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(svc.state(sid, machine))


@wizard_bp.delete("/api/wizard/sessions/<sid>/files/<field_name>")
def clear_file(sid: str, field_name: str):
    svc = _wizard_service()
    machine = svc.get(sid)
    try:
        svc.set_values(machine, {field_name: None})
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(svc.state(sid, machine))


@wizard_bp.post("/api/wizard/sessions/<sid>/sections/<section_id>/enter")
def enter_section(sid: str, section_id: str):
    svc = _wizard_service()
    machine = svc.get(sid)
    machine.enter_section(section_id)
    return jsonify(svc.state(sid, machine))


@wizard_bp.post("/api/wizard/sessions/<sid>/save")
def save_section(sid: str):
    svc = _wizard_service()
    machine = svc.get(sid)
    result = svc.save(machine)
    body = {"result": result.to_dict(), "state": svc.state(sid, machine)}
    return jsonify(body), SAVE_STATUS_CODES[result.status]


@wizard_bp.delete("/api/wizard/sessions/<sid>")
def discard_session(sid: str):
    _wizard_service().discard(sid)
    return "", 204


@wizard_bp.get("/uploads/<path:filename>")
def uploaded_file(filename: str):
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], filename)
