import pytest
from fastapi import HTTPException

from lms.core.errors import ArrangementLocked, NotFound, to_http


def _translate(exc):
    try:
        raise exc
    except Exception as e:
        return to_http(e)


@pytest.mark.parametrize(
    "exc, code",
    [
        (NotFound("Course not found"), 404),
        (PermissionError("nope"), 403),
        (ArrangementLocked("locked"), 403),
        (ValueError("bad input"), 400),
        (HTTPException(418, "teapot"), 418),
    ],
)
def test_domain_errors_map_to_status(exc, code):
    assert _translate(exc).status_code == code


@pytest.mark.parametrize("exc", [KeyError("content_id"), IndexError("list index out of range"), RuntimeError("boom")])
def test_programming_errors_become_500(exc):
    http = _translate(exc)
    assert http.status_code == 500
    assert http.detail == "Internal server error"
