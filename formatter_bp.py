"""
Flask Blueprint for the witness statement formatter API.
POST /api/analyse: classification preview (JSON).
POST /api/format: formatted DOCX as an attachment.
"""
import io
import logging

from flask import Blueprint, current_app, jsonify, request, send_file
from werkzeug.utils import secure_filename

from witness_format.backend import analyse_document, format_witness_statement, make_output_name
from witness_format.utils.formatter import LegalHeaderMetadata
from witness_format.utils.numbering_patcher import DocumentStructureError

logger = logging.getLogger(__name__)

formatter_bp = Blueprint("formatter", __name__, url_prefix="/api")

ALLOWED_EXTENSIONS = {"docx"}
DOCX_MIMETYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def allowed_file(filename):
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _uploaded_docx():
    """(stream, filename) of the uploaded .docx, or (None, error response)."""
    if "file" not in request.files:
        return None, (jsonify({"error": "No file part"}), 400)
    file = request.files["file"]
    if file.filename == "":
        return None, (jsonify({"error": "No file selected"}), 400)
    if not allowed_file(file.filename):
        return None, (jsonify({"error": "Only .docx files are allowed"}), 400)
    return (io.BytesIO(file.read()), secure_filename(file.filename)), None


def _use_ai() -> bool:
    return (request.form.get("use_ai") or "").strip().lower() in ("1", "true", "yes", "on")


@formatter_bp.route("/analyse", methods=["POST"])
def analyse():
    upload, error = _uploaded_docx()
    if error:
        return error
    stream, filename = upload
    try:
        rows = analyse_document(stream, use_ai=_use_ai(), config=current_app.config["WITNESS_CONFIG"])
    except DocumentStructureError as e:
        logger.error("Analysis failed for %s: %s", filename, e)
        return jsonify({"error": str(e)}), 422
    return jsonify({"ok": True, "filename": filename, "paragraphs": rows})


@formatter_bp.route("/format", methods=["POST"])
def format_document():
    upload, error = _uploaded_docx()
    if error:
        return error
    stream, filename = upload
    header = LegalHeaderMetadata.from_mapping(request.form)
    try:
        result = format_witness_statement(
            stream,
            header=header,
            use_ai=_use_ai(),
            config=current_app.config["WITNESS_CONFIG"],
        )
    except DocumentStructureError as e:
        logger.error("Formatting failed for %s: %s", filename, e)
        return jsonify({"error": str(e)}), 422
    return send_file(
        io.BytesIO(result.docx_bytes),
        mimetype=DOCX_MIMETYPE,
        as_attachment=True,
        download_name=make_output_name(filename),
    )
