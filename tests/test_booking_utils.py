import unittest
import os
import sys
from datetime import datetime
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
from appointment_sync.booking import booking_utils as util
from appointment_sync.booking.error_utils import BookingTimeError, BookingValidationError


class ParseBookingDatetimeTest(unittest.TestCase):

    def test_afternoon_converts_to_24_hour(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "1:00 PM"), datetime(2025, 3, 10, 13, 0))

    def test_noon_and_midnight(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "12:00 PM").hour, 12)
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "12:30 AM"), datetime(2025, 3, 10, 0, 30))

    def test_morning_hour_unchanged(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "9:45 AM"), datetime(2025, 3, 10, 9, 45))

    def test_lowercase_meridiem(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "3:15 pm").hour, 15)

    def test_minute_defaults_to_zero(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "3 PM"), datetime(2025, 3, 10, 15, 0))
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "3:xx PM"), datetime(2025, 3, 10, 15, 0))

    def test_no_meridiem_reads_24_hour_clock(self):
        self.assertEqual(util.parse_booking_datetime("2025-03-10", "17:30"), datetime(2025, 3, 10, 17, 30))

    def test_result_is_naive_wall_clock(self):
        self.assertIsNone(util.parse_booking_datetime("2025-03-10", "1:00 PM").tzinfo)

    def test_rejects_malformed_values(self):
        bad_inputs = [
            ("2025-03", "1:00 PM"),
            ("2025-02-30", "1:00 PM"),
            ("March 10", "1:00 PM"),
            ("2025-03-10", "13:00 PM"),
            ("2025-03-10", "0:30 AM"),
            ("2025-03-10", "1:00 XM"),
            ("2025-03-10", "noon"),
            ("2025-03-10", "1:75 PM"),
            ("2025-03-10", "1:30PM"),
            ("2025-03-10", "1:30:45 PM"),
            ("2025-03-10", "1:3x PM"),
            ("2025-03-10", "1:30pm"),
            ("", "1:00 PM"),
            ("2025-03-10", None),
        ]
        for date_str, time_str in bad_inputs:
            with self.subTest(date=date_str, time=time_str):
                with self.assertRaises(BookingTimeError):
                    util.parse_booking_datetime(date_str, time_str)

    def test_rejects_time_inside_dst_gap(self):
        with self.assertRaises(BookingTimeError):
            util.parse_booking_datetime("2025-03-09", "2:30 AM", "America/New_York")

    def test_rejects_dates_past_calendar_range(self):
        with self.assertRaises(BookingTimeError):
            util.parse_booking_datetime("9999-12-31", "11:30 PM")

    def test_rejects_unknown_timezone(self):
        with self.assertRaises(BookingTimeError):
            util.parse_booking_datetime("2025-03-10", "1:00 PM", "Mars/Olympus_Mons")


class EventWindowTest(unittest.TestCase):

    def test_end_is_one_hour_after_start(self):
        start, end = util.event_window(datetime(2025, 3, 10, 13, 0))
        self.assertEqual(end, datetime(2025, 3, 10, 14, 0))

    def test_late_evening_rolls_into_next_day(self):
        start = util.parse_booking_datetime("2025-03-10", "11:15 PM")
        _, end = util.event_window(start)
        self.assertEqual(end, datetime(2025, 3, 11, 0, 15))

    def test_end_past_calendar_range(self):
        with self.assertRaises(BookingTimeError):
            util.event_window(datetime(9999, 12, 31, 23, 30))

    def test_rolls_across_month_and_year(self):
        self.assertEqual(util.event_window(datetime(2024, 1, 31, 23, 30))[1], datetime(2024, 2, 1, 0, 30))
        self.assertEqual(util.event_window(datetime(2024, 12, 31, 23, 0))[1], datetime(2025, 1, 1, 0, 0))


class BuildCalendarEventTest(unittest.TestCase):

    def setUp(self):
        self.booking = {
            "id": "booking_1741611600000",
            "date": "2025-03-10",
            "time": "1:00 PM",
            "name": "Ana Rivera",
            "email": "ana.rivera@gmail.com",
            "phone": "+17875551234",
            "service": "Consultation",
        }

    def test_start_and_end_bind_timezone_explicitly(self):
        event = util.build_calendar_event(self.booking)
        self.assertEqual(event["start"], {"dateTime": "2025-03-10T13:00:00", "timeZone": "America/Puerto_Rico"})
        self.assertEqual(event["end"], {"dateTime": "2025-03-10T14:00:00", "timeZone": "America/Puerto_Rico"})

    def test_summary_and_description(self):
        event = util.build_calendar_event(self.booking)
        self.assertEqual(event["summary"], "Consultation - Ana Rivera")
        lines = event["description"].split("\n")
        self.assertEqual(lines[0], "Client: Ana Rivera")
        self.assertIn("Notes: No additional notes", lines)
        self.assertEqual(lines[-1], "Booking ID: booking_1741611600000")

    def test_notes_included_when_present(self):
        self.booking["notes"] = "First visit"
        self.assertIn("Notes: First visit", util.build_calendar_event(self.booking)["description"])

    def test_reminder_overrides(self):
        reminders = util.build_calendar_event(self.booking)["reminders"]
        self.assertFalse(reminders["useDefault"])
        self.assertEqual(reminders["overrides"], [{"method": "email", "minutes": 1440}, {"method": "popup", "minutes": 60}])


class SanitizeContactTest(unittest.TestCase):

    def test_phone_normalized_to_e164(self):
        self.assertEqual(util.sanitize_phone("(787) 555-1234"), "+17875551234")
        self.assertEqual(util.sanitize_phone("+44 20 7946 0958"), "+442079460958")

    def test_bad_phone(self):
        for phone in ["", "call me", "123", "9" * 60]:
            with self.subTest(phone=phone):
                with self.assertRaises(BookingValidationError):
                    util.sanitize_phone(phone)

    def test_email(self):
        self.assertEqual(util.sanitize_email("  ana.rivera@gmail.com "), "ana.rivera@gmail.com")
        for email in ["", "not-an-email", "a@b"]:
            with self.subTest(email=email):
                with self.assertRaises(BookingValidationError):
                    util.sanitize_email(email)


if __name__ == '__main__':
    unittest.main()
