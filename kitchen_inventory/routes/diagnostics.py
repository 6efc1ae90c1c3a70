from __future__ import annotations

import shutil
import tempfile
from pathlib import Path

from flask import Blueprint, after_this_request, current_app, flash, redirect, render_template, send_file, url_for

from kitchen_inventory.services.database_info import collect_database_info
from kitchen_inventory.services.diagnostics_exporter import (
    DiagnosticsExportError,
    export_diagnostics,
)
from kitchen_inventory.utils.text_files import timestamped_filename

bp = Blueprint("diagnostics", __name__, url_prefix="/diagnostics")


@bp.route("/")
def index():
    info = collect_database_info(current_app._get_current_object())
    return render_template("diagnostics/index.html", info=info)


@bp.route("/export", methods=["POST"])
def export_bundle():
    app = current_app._get_current_object()
    filename = timestamped_filename("diagnostics", extension="zip")
    staging_dir = Path(tempfile.mkdtemp(prefix="inv-diag-download-"))

    try:
        archive_path = export_diagnostics(app, staging_dir / filename)
    except DiagnosticsExportError as exc:
        shutil.rmtree(staging_dir, ignore_errors=True)
        flash(str(exc), "danger")
        return redirect(url_for("diagnostics.index"))

    @after_this_request
    def _cleanup(response):
        response.call_on_close(lambda: shutil.rmtree(staging_dir, ignore_errors=True))
        return response

    return send_file(
        archive_path,
        mimetype="application/zip",
        as_attachment=True,
        download_name=filename,
    )
