"""
Tests for the live form instance.

Focus Areas:
1. Data bag lifecycle (defaults, submissions, edits)
2. Settle loop: overrides and calculated values converge
3. Validation trigger policy and error views
4. Effective views, submission and events
"""

import logging

import pytest

from formtree.config import RendererOptions, ValidateTrigger
from formtree.renderer import ChangeSource, FormEventType, FormRenderer
from formtree.validation import ErrorKind


def calc_schema():
    return {
        "components": [
            {"type": "number", "key": "a", "label": "A"},
            {"type": "number", "key": "b", "label": "B", "calculateValue": "value = data.a * 2"},
        ]
    }


def signup_schema():
    return {
        "components": [
            {
                "type": "textfield",
                "key": "name",
                "label": "Name",
                "validate": {"required": True, "minLength": 2},
            },
            {
                "type": "checkbox",
                "key": "company",
                "label": "Company",
            },
            {
                "type": "panel",
                "key": "companyPanel",
                "conditional": {"show": True, "when": "company", "eq": True},
                "components": [
                    {
                        "type": "textfield",
                        "key": "companyName",
                        "label": "Company name",
                        "validate": {"required": True},
                    }
                ],
            },
            {
                "type": "textfield",
                "key": "vat",
                "label": "VAT",
                "logic": [
                    {
                        "trigger": {
                            "type": "simple",
                            "simple": {"show": True, "when": "company", "eq": True},
                        },
                        "actions": [
                            {
                                "type": "property",
                                "property": {"value": "validate"},
                                "state": {"required": True},
                            }
                        ],
                    }
                ],
            },
        ]
    }


class TestDataLifecycle:
    """Test how the data bag is created and replaced."""

    def test_defaults_on_construction(self):
        """The bag starts with schema defaults."""
        form = FormRenderer(signup_schema())
        assert form.data == {"name": "", "company": False, "companyName": "", "vat": ""}
        assert not form.is_dirty

    def test_no_defaults_option(self):
        """noDefaults starts with an empty bag."""
        form = FormRenderer(signup_schema(), RendererOptions(noDefaults=True))
        assert form.data == {}

    def test_set_field_value_marks_dirty(self):
        """Edits are stored and mark the form dirty."""
        form = FormRenderer(signup_schema())
        form.set_field_value("name", "Ada")
        assert form.get_field_value("name") == "Ada"
        assert form.is_dirty

    def test_set_submission_merges_defaults(self):
        """Submitted values win; missing keys keep defaults."""
        form = FormRenderer(signup_schema())
        form.set_field_value("name", "x")
        form.set_submission({"data": {"name": "Ada", "extra": 1}})
        assert form.data == {
            "name": "Ada",
            "company": False,
            "companyName": "",
            "vat": "",
            "extra": 1,
        }
        assert not form.is_dirty

    def test_reset_data_clears_errors(self):
        """reset_data restores defaults and forgets errors."""
        form = FormRenderer(signup_schema())
        form.validate_all()
        assert form.errors
        form.reset_data()
        assert form.errors == {}
        assert form.is_valid
        assert not form.show_errors

    def test_set_schema_bumps_revision(self):
        """A new schema replaces the bag and invalidates caches."""
        form = FormRenderer(signup_schema())
        revision = form.revision
        form.set_schema(calc_schema())
        assert form.revision == revision + 1
        assert [node["key"] for node in form.input_nodes] == ["a", "b"]
        assert form.data == {"a": None, "b": 0}


class TestSettleLoop:
    """Test recomputation after changes."""

    def test_calculated_value_converges(self):
        """Setting a=3 yields b=6."""
        form = FormRenderer(calc_schema())
        form.set_field_value("a", 3)
        assert form.data["b"] == 6

    def test_text_input_is_multiplied_as_number(self):
        """A textfield value of "3" doubles to 6, not "33"."""
        schema = {
            "components": [
                {"type": "textfield", "key": "qty"},
                {"type": "number", "key": "total", "calculateValue": "value = data.qty * 2"},
            ]
        }
        form = FormRenderer(schema)
        form.set_field_value("qty", "3")
        assert form.data["total"] == 6

    def test_same_value_emits_no_calculated_write(self):
        """Re-setting a=3 does not write b again."""
        form = FormRenderer(calc_schema())
        form.set_field_value("a", 3)
        events = []
        form.subscribe(events.append)

        form.set_field_value("a", 3)

        calculated = [e for e in events if e.source == ChangeSource.CALCULATED]
        assert calculated == []
        assert [e.key for e in events if e.type == FormEventType.CHANGE] == ["a"]

    def test_chained_calculations(self):
        """Calculations feeding each other settle within the cap."""
        schema = {
            "components": [
                {"type": "number", "key": "c", "calculateValue": "value = data.b + 1"},
                {"type": "number", "key": "a"},
                {"type": "number", "key": "b", "calculateValue": "value = data.a * 2"},
            ]
        }
        form = FormRenderer(schema)
        form.set_field_value("a", 1)
        assert form.data["b"] == 2
        assert form.data["c"] == 3

    def test_oscillation_hits_cap(self, caplog):
        """A self-feeding calculation stops at max_settle_iterations."""
        schema = {
            "components": [
                {"type": "number", "key": "n", "defaultValue": 0, "calculateValue": "value = data.n + 1"}
            ]
        }
        with caplog.at_level(logging.WARNING, logger="formtree.renderer.form_renderer"):
            form = FormRenderer(schema, RendererOptions(max_settle_iterations=3))
        assert form.data["n"] == 3
        assert "did not settle" in caplog.text

    def test_overrides_follow_data(self):
        """Logic overrides are recomputed on every change."""
        form = FormRenderer(signup_schema())
        vat = form.find_input("vat")
        assert form.get_overridden_node(vat) is vat

        form.set_field_value("company", True)
        assert form.overrides == {"vat": {"validate": {"required": True}}}
        form.set_field_value("company", False)
        assert form.overrides == {}

    def test_batch_settles_once(self):
        """Edits inside batch settle when the block ends."""
        form = FormRenderer(calc_schema())
        with form.batch():
            form.set_field_value("a", 5)
            assert form.data["b"] == 0
        assert form.data["b"] == 10

    def test_listener_edits_are_picked_up(self):
        """A listener writing during settle does not re-enter the loop."""
        form = FormRenderer(calc_schema())

        def mirror(event):
            if event.key == "b" and event.source == ChangeSource.CALCULATED:
                form.set_field_value("mirror", event.value)

        form.subscribe(mirror)
        form.set_field_value("a", 2)
        assert form.data["mirror"] == 4


class TestVisibility:
    """Test visibility and effective views."""

    def test_conditional_visibility(self):
        """The panel shows only for companies."""
        form = FormRenderer(signup_schema())
        panel = form.components[2]
        assert not form.is_node_visible(panel)
        form.set_field_value("company", True)
        assert form.is_node_visible(panel)

    def test_hidden_override_hides(self):
        """A hidden override makes the node invisible."""
        schema = {
            "components": [
                {
                    "type": "textfield",
                    "key": "t",
                    "logic": [
                        {
                            "trigger": {"type": "json", "json": True},
                            "actions": [
                                {"type": "property", "property": {"value": "hidden"}, "state": "true"}
                            ],
                        }
                    ],
                }
            ]
        }
        form = FormRenderer(schema)
        assert not form.is_node_visible(form.components[0])
        assert form.effective_view(form.components[0])["visible"] is False

    def test_effective_view_read_only(self):
        """Read-only forms force disabled on every view."""
        form = FormRenderer(signup_schema(), RendererOptions(readOnly=True))
        view = form.effective_view(form.components[0])
        assert view["disabled"] is True
        assert view["visible"] is True
        assert form.components[0]["disabled"] is False


class TestValidationPolicy:
    """Test when validation runs and how errors are reported."""

    def test_submit_policy_waits(self):
        """With the default policy edits do not validate."""
        form = FormRenderer(signup_schema())
        form.set_field_value("name", "a")
        form.handle_field_blur("name")
        assert form.errors == {}

    def test_change_policy(self):
        """With showErrors=change every edit validates its field."""
        form = FormRenderer(signup_schema(), RendererOptions(showErrors="change"))
        form.set_field_value("name", "a")
        assert [e.type for e in form.get_field_errors("name")] == [ErrorKind.MIN_LENGTH]
        form.set_field_value("name", "ab")
        assert form.get_field_errors("name") == []
        assert form.is_valid

    def test_blur_policy(self):
        """With showErrors=blur fields validate on blur only."""
        form = FormRenderer(signup_schema(), RendererOptions(validate_trigger=ValidateTrigger.BLUR))
        form.set_field_value("name", "")
        assert form.errors == {}
        errors = form.handle_field_blur("name")
        assert [e.type for e in errors] == [ErrorKind.REQUIRED]
        assert form.show_errors

    def test_validate_all_skips_hidden_panel(self):
        """Fields inside an invisible panel are not validated."""
        form = FormRenderer(signup_schema())
        form.validate_all()
        assert list(form.errors) == ["name"]
        assert form.show_errors
        assert not form.is_valid

    def test_validate_all_uses_overrides(self):
        """Overridden rules apply once their trigger fires."""
        form = FormRenderer(signup_schema())
        form.set_field_value("name", "Ada")
        form.set_field_value("company", True)
        form.validate_all()
        assert list(form.errors) == ["companyName", "vat"]

    def test_all_errors_in_traversal_order(self):
        """all_errors follows the schema, not validation order."""
        form = FormRenderer(signup_schema(), RendererOptions(showErrors="change"))
        form.set_field_value("company", True)
        form.validate_field_by_key("vat")
        form.validate_field_by_key("name")
        assert [e.key for e in form.all_errors] == ["name", "vat"]
        assert form.error_count == 2

    def test_field_in_hidden_panel_is_not_validated(self):
        """A field whose panel is hidden has no errors, on change or on blur."""
        form = FormRenderer(signup_schema(), RendererOptions(showErrors="change"))
        form.set_field_value("name", "Ada")
        form.set_field_value("companyName", "")
        assert form.get_field_errors("companyName") == []
        assert form.handle_field_blur("companyName") == []
        assert form.validate_field_by_key("companyName") == []
        assert form.is_valid

    def test_errors_clear_when_panel_hides(self):
        """Stored errors of a panel field go away once the panel is hidden."""
        form = FormRenderer(signup_schema(), RendererOptions(showErrors="change"))
        form.set_field_value("company", True)
        assert [e.type for e in form.validate_field_by_key("companyName")] == [ErrorKind.REQUIRED]

        form.set_field_value("company", False)
        assert form.validate_field_by_key("companyName") == []
        assert "companyName" not in form.errors

    def test_validate_unknown_key(self):
        """Unknown keys validate to nothing."""
        form = FormRenderer(signup_schema())
        assert form.validate_field_by_key("ghost") == []

    def test_invalid_options_raise(self):
        """Configuration errors surface at construction."""
        with pytest.raises(ValueError):
            RendererOptions(showErrors="sometimes")
        with pytest.raises(ValueError):
            RendererOptions(max_settle_iterations=0)


class TestSubmission:
    """Test submission and events."""

    def test_submit_with_errors(self):
        """Invalid forms return their errors and no payload."""
        form = FormRenderer(signup_schema())
        result = form.submit()
        assert not result.success
        assert result.submission is None
        assert [e.key for e in result.errors] == ["name"]

    def test_submit_success(self):
        """Valid forms return the payload."""
        form = FormRenderer(signup_schema(), RendererOptions(timezone="UTC"))
        form.set_field_value("name", "Ada")
        result = form.submit()
        assert result.success
        assert result.errors == []
        assert result.submission == {
            "data": {"name": "Ada", "company": False, "companyName": "", "vat": ""},
            "metadata": {"timezone": "UTC"},
            "state": "submitted",
        }

    def test_submission_is_a_copy(self):
        """Editing the payload does not touch the bag."""
        form = FormRenderer(signup_schema())
        form.submission["data"]["name"] = "changed"
        assert form.data["name"] == ""

    def test_change_events(self):
        """Change events carry old and new values; unsubscribe stops them."""
        form = FormRenderer(signup_schema())
        events = []
        unsubscribe = form.subscribe(events.append)
        form.set_field_value("name", "Ada")
        unsubscribe()
        form.set_field_value("name", "Bob")

        assert len(events) == 1
        event = events[0]
        assert event.type == FormEventType.CHANGE
        assert (event.key, event.value, event.old_value) == ("name", "Ada", "")
        assert event.source == ChangeSource.USER
