import pytest
from pydantic import ValidationError

import application
import config
import errors
import user

from .fakes import FakeJumpCloud


def test_application_by_name(cfg: config.Config, jc: FakeJumpCloud):
    jc.add_application("Slack", "Slack (prod)")
    app_id = jc.add_application("GitHub", "GitHub Enterprise")

    assert application.read_data_source(jc, cfg, {"name": "GitHub"}) == {
        "id": app_id,
        "name": "GitHub",
        "display_label": "GitHub Enterprise",
    }


def test_application_by_display_label_on_a_later_page(cfg: config.Config, jc: FakeJumpCloud):
    small_pages = cfg.model_copy(update={"page_size": 2})
    for i in range(4):
        jc.add_application(f"app-{i}")
    app_id = jc.add_application("GitHub", "GitHub Enterprise")

    assert application.read_data_source(jc, small_pages, {"display_label": "GitHub Enterprise"})["id"] == app_id
    assert len(jc.calls_to("GET", "/applications")) == 3


def test_application_not_found(cfg: config.Config, jc: FakeJumpCloud):
    jc.add_application("Slack")
    with pytest.raises(errors.NotFound, match="no application found"):
        application.read_data_source(jc, cfg, {"name": "GitHub"})


def test_application_requires_a_filter(cfg: config.Config, jc: FakeJumpCloud):
    with pytest.raises(ValidationError, match="either name or display_label"):
        application.read_data_source(jc, cfg, {})


def test_user_by_email(cfg: config.Config, jc: FakeJumpCloud):
    user_id = jc.add_user("jane@example.com")

    assert user.read_data_source(jc, cfg, {"email": "jane@example.com"}) == {
        "id": user_id,
        "email": "jane@example.com",
        "username": "jane",
    }


def test_user_not_found(cfg: config.Config, jc: FakeJumpCloud):
    with pytest.raises(errors.NotFound):
        user.read_data_source(jc, cfg, {"email": "ghost@example.com"})
