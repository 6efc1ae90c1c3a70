import os
import sys

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), ".."))

from kitchen_inventory import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "INVENTORY_DATA_DIR": str(tmp_path),
        }
    )

    @app.route("/boom")
    def boom():
        raise RuntimeError("pantry exploded")

    return app


def test_unhandled_exception_renders_error_page(app):
    response = app.test_client().get("/boom")

    assert response.status_code == 500
    body = response.get_data(as_text=True)
    assert "Something went wrong" in body
    assert "pantry exploded" in body
    assert "Traceback" not in body


def test_stacktrace_is_shown_in_debug_mode(app):
    app.debug = True

    body = app.test_client().get("/boom").get_data(as_text=True)

    assert "Traceback" in body


def test_not_found_is_left_alone(app):
    response = app.test_client().get("/no-such-page")

    assert response.status_code == 404
    assert "Something went wrong" not in response.get_data(as_text=True)
