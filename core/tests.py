from dataclasses import dataclass

from django.contrib.auth import get_user_model
from django.contrib.contenttypes.models import ContentType
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from core.domain.dispatcher import DomainEventDispatcher
from core.domain.events import DomainEvent
from core.exceptions import InvalidInput, InvalidStatus, NotFound, OperationError
from core.http import STATUS_BY_CODE, error_response
from core.models import AuditLog, NumberingScheme, NumberSequence
from core.services.audit import log_event
from core.services.numbering import generate_number_for_instance
from inventory.models import Location


@dataclass(frozen=True, kw_only=True)
class PingEvent(DomainEvent):
    value: int


class ExceptionTests(SimpleTestCase):
    def test_subclasses_carry_default_codes(self):
        self.assertEqual(NotFound("x").code, "not_found")
        self.assertEqual(InvalidInput("x").code, "invalid_input")
        self.assertEqual(InvalidStatus("x").code, "invalid_status")

    def test_message_is_str(self):
        exc = InvalidInput("Quantity must be positive")
        self.assertEqual(str(exc), "Quantity must be positive")
        self.assertIsInstance(exc, OperationError)

    def test_error_response_maps_code_to_http_status(self):
        response = error_response(NotFound("Inventory item 9 not found."))
        self.assertEqual(response.status_code, STATUS_BY_CODE["not_found"])
        self.assertIn(b'"not_found"', response.content)


class DispatcherTests(SimpleTestCase):
    def setUp(self):
        self.dispatcher = DomainEventDispatcher()
        self.received = []

    def test_emit_calls_registered_handlers(self):
        @self.dispatcher.register_handler(PingEvent)
        def on_ping(event):
            self.received.append(event.value)

        self.dispatcher.emit(PingEvent(value=3))
        self.assertEqual(self.received, [3])

    def test_registering_twice_keeps_one_handler(self):
        def on_ping(event):
            self.received.append(event.value)

        self.dispatcher.register_handler(PingEvent)(on_ping)
        self.dispatcher.register_handler(PingEvent)(on_ping)
        self.assertEqual(len(self.dispatcher.handlers_for(PingEvent)), 1)

    def test_failing_handler_is_logged_and_others_still_run(self):
        @self.dispatcher.register_handler(PingEvent)
        def broken(event):
            raise RuntimeError("boom")

        @self.dispatcher.register_handler(PingEvent)
        def on_ping(event):
            self.received.append(event.value)

        with self.assertLogs("core.domain.dispatcher", level="ERROR"):
            self.dispatcher.emit(PingEvent(value=7))
        self.assertEqual(self.received, [7])

    def test_event_has_utc_timestamp(self):
        event = PingEvent(value=1)
        self.assertIsNotNone(event.occurred_at.tzinfo)


class AuditLogTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="auditor", password="x")
        self.location = Location.objects.create(name="Dock")

    def test_log_event_stores_actor_target_and_extra(self):
        entry = log_event(
            action=AuditLog.Action.UPDATE,
            message="Renamed dock",
            actor=self.user,
            target=self.location,
            extra={"old": "Dock A"},
        )
        self.assertEqual(entry.action, "update")
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.target_content_type, ContentType.objects.get_for_model(Location))
        self.assertEqual(entry.target_object_id, str(self.location.pk))
        self.assertEqual(entry.extra, {"old": "Dock A"})

    def test_log_event_without_actor(self):
        entry = log_event(action="other", message="system job")
        self.assertIsNone(entry.actor)
        self.assertIsNone(entry.target_object_id)

    def test_unknown_action_is_rejected(self):
        with self.assertRaises(ValueError):
            log_event(action="teleport")


class NumberingTests(TestCase):
    def test_fallback_pattern_counts_up(self):
        first = generate_number_for_instance(Location(name="a"), field_name="code")
        second = generate_number_for_instance(Location(name="b"), field_name="code")
        self.assertEqual(first, "000001")
        self.assertEqual(second, "000002")
        self.assertTrue(
            NumberingScheme.objects.filter(model_label="inventory.Location", field_name="code").exists()
        )

    def test_configured_scheme_with_yearly_reset(self):
        NumberingScheme.objects.create(
            model_label="inventory.Location",
            field_name="code",
            pattern="LOC-{year}-{seq:03d}",
            reset=NumberingScheme.ResetPolicy.YEAR,
            start=5,
        )
        number = generate_number_for_instance(Location(name="a"), field_name="code")
        year = timezone.now().year
        self.assertEqual(number, f"LOC-{year}-005")
        self.assertEqual(NumberSequence.objects.get(key="inventory.Location").period, str(year))
