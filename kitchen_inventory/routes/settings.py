from flask import Blueprint, flash, redirect, render_template, request, url_for

from kitchen_inventory.services import preferences

bp = Blueprint("settings", __name__, url_prefix="/settings")


@bp.route("/", methods=["GET", "POST"])
def preferences_page():
    if request.method == "POST":
        try:
            preferences.set_thresholds(
                request.form.get("low_stock_threshold", ""),
                request.form.get("expiring_soon_days", ""),
            )
        except ValueError as exc:
            flash(str(exc), "danger")
        except OSError:
            flash("Preferences could not be written to disk.", "danger")
        else:
            flash("Preferences saved.", "success")
        return redirect(url_for("settings.preferences_page"))

    return render_template(
        "settings/preferences.html",
        thresholds=preferences.get_thresholds(),
        preferences_path=preferences.get_store().path,
    )
