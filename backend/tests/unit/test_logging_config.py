import json
import logging

import pytest

from petpocket.core.logging_config import JSONFormatter, redact_context


@pytest.mark.unit
def test_redact_context_masks_personal_fields():
    context = {
        "owner_id": 7,
        "email": "ana@example.com",
        "nested": {"phone": "555-0100", "pet_id": 2},
    }

    redacted = redact_context(context)

    assert redacted["owner_id"] == 7
    assert redacted["email"] == "***"
    assert redacted["nested"] == {"phone": "***", "pet_id": 2}
    assert context["email"] == "ana@example.com"


@pytest.mark.unit
def test_json_formatter_redacts_context():
    record = logging.LogRecord("petpocket.test", logging.INFO, __file__, 1, "Owner created", None, None)
    record.context = {"owner_id": 1, "name": "Ana Souza"}

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "Owner created"
    assert payload["level"] == "INFO"
    assert payload["context"] == {"owner_id": 1, "name": "***"}
