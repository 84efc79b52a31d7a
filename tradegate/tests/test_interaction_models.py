import pytest
from pydantic import ValidationError

from tradegate.models import (
    ApplicationCommandEvent,
    BooleanOption,
    IntegerOption,
    NumberOption,
    StringOption,
    UserOption,
)
from tradegate.tests.fakes import command, interaction_payload


def test_options_are_typed_by_discriminator():
    event = command(
        options=[
            {"type": 3, "name": "symbol", "value": "ACME"},
            {"type": 4, "name": "quantity", "value": 10},
            {"type": 10, "name": "limit", "value": 12.5},
            {"type": 5, "name": "dry_run", "value": True},
            {"type": 6, "name": "account", "value": "55"},
        ]
    )

    options = event.options()
    assert isinstance(options["symbol"], StringOption)
    assert isinstance(options["quantity"], IntegerOption)
    assert isinstance(options["limit"], NumberOption)
    assert isinstance(options["dry_run"], BooleanOption)
    assert isinstance(options["account"], UserOption)
    assert options["quantity"].value == 10
    assert options["limit"].value == 12.5


def test_number_option_accepts_integral_json_values():
    event = command(options=[{"type": 10, "name": "limit", "value": 12}])

    assert event.options()["limit"].value == 12.0


@pytest.mark.parametrize(
    "option",
    [
        {"type": 3, "name": "symbol", "value": 5},
        {"type": 4, "name": "quantity", "value": "10"},
        {"type": 5, "name": "dry_run", "value": "yes"},
        {"type": 99, "name": "mystery", "value": 1},
    ],
)
def test_mismatched_option_values_are_rejected(option):
    with pytest.raises(ValidationError):
        command(options=[option])


def test_subcommands_are_flattened():
    event = command(
        name="order",
        options=[
            {
                "type": 2,
                "name": "limit",
                "options": [
                    {
                        "type": 1,
                        "name": "buy",
                        "options": [
                            {"type": 3, "name": "symbol", "value": "ACME"},
                            {"type": 4, "name": "quantity", "value": 3},
                        ],
                    }
                ],
            }
        ],
    )

    assert event.command_name == "order"
    assert event.subcommand_path() == ["limit", "buy"]
    assert sorted(event.options()) == ["quantity", "symbol"]


def test_user_id_prefers_member_then_user():
    assert command().user_id == "55"

    payload = interaction_payload()
    payload.pop("member")
    payload["user"] = {"id": "77"}
    assert ApplicationCommandEvent.model_validate(payload).user_id == "77"

    payload.pop("user")
    assert ApplicationCommandEvent.model_validate(payload).user_id is None


def test_only_application_commands_are_recognised():
    payload = interaction_payload()
    assert ApplicationCommandEvent.is_application_command(payload)

    payload["type"] = 3
    assert not ApplicationCommandEvent.is_application_command(payload)
    assert not ApplicationCommandEvent.is_application_command(None)
    assert not ApplicationCommandEvent.is_application_command(["type", 2])
