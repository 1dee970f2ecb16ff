import re
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from django.urls import reverse

from hosted.errors import BackendError
from .fakes import FakeHostedBackend, sign_in

TICKET_PATTERN = re.compile(r"^BT-[A-Z0-9]{6}$")


class FlowTestCase(TestCase):
    def setUp(self):
        self.hosted = FakeHostedBackend()
        patcher = self.hosted.patch()
        patcher.start()
        self.addCleanup(patcher.stop)
        self.hosted.add_profile("u-student", "Asha", "student", "ST-204")
        self.hosted.add_profile("u-staff", "Ravi", "staff", "SF-17")
        self.hosted.add_profile("u-admin", "Meera", "admin", "AD-1")

    def submit(self, reason="Noisy AC", details="Room 204 AC is loud at night", **files):
        return self.client.post(
            reverse("complaints:submit"), {"reason": reason, "details": details, **files}
        )

    def last_ticket(self):
        return self.hosted.complaints[-1]["ticket"]


class SubmitComplaintTests(FlowTestCase):
    def test_requires_login(self):
        response = self.client.get(reverse("complaints:submit"))
        self.assertRedirects(
            response, f"{reverse('login')}?next={reverse('complaints:submit')}", fetch_redirect_response=False
        )

    def test_zero_attachments_gives_empty_url_lists(self):
        sign_in(self.client, "u-student")
        response = self.submit()
        self.assertRedirects(response, reverse("complaints:submit"), fetch_redirect_response=False)
        row = self.hosted.complaints[0]
        self.assertEqual(row["image_urls"], [])
        self.assertEqual(row["video_urls"], [])
        self.assertEqual(row["user_id"], "u-student")
        self.assertRegex(row["ticket"], TICKET_PATTERN)
        self.assertEqual(self.hosted.uploads, [])

    def test_ticket_shown_once_and_form_cleared(self):
        sign_in(self.client, "u-student")
        response = self.submit()
        page = self.client.get(response["Location"])
        ticket = self.last_ticket()
        self.assertEqual(page.context["ticket"], ticket)
        self.assertContains(page, ticket)
        self.assertFalse(page.context["form"].is_bound)
        again = self.client.get(reverse("complaints:submit"))
        self.assertIsNone(again.context["ticket"])

    def test_tickets_are_distinct_across_submissions(self):
        sign_in(self.client, "u-student")
        for _ in range(5):
            self.submit()
        tickets = [row["ticket"] for row in self.hosted.complaints]
        self.assertEqual(len(tickets), 5)
        self.assertEqual(len(set(tickets)), 5)
        self.assertTrue(all(t for t in tickets))

    def test_attachments_uploaded_in_order_under_user_folder(self):
        sign_in(self.client, "u-staff")
        self.submit(
            images=[
                SimpleUploadedFile("first.png", b"png-1", content_type="image/png"),
                SimpleUploadedFile("second.jpg", b"jpg-2", content_type="image/jpeg"),
            ],
            videos=[SimpleUploadedFile("clip.mp4", b"mp4", content_type="video/mp4")],
        )
        row = self.hosted.complaints[0]
        self.assertEqual(len(row["image_urls"]), 2)
        self.assertEqual(len(row["video_urls"]), 1)
        paths = [u[1] for u in self.hosted.uploads]
        self.assertRegex(paths[0], r"^u-staff/\d+-[0-9a-z]{6}\.png$")
        self.assertRegex(paths[1], r"^u-staff/\d+-[0-9a-z]{6}\.jpg$")
        self.assertRegex(paths[2], r"^u-staff/\d+-[0-9a-z]{6}\.mp4$")
        self.assertTrue(row["image_urls"][0].endswith(paths[0]))
        self.assertTrue(row["video_urls"][0].endswith(paths[2]))
        self.assertEqual({u[0] for u in self.hosted.uploads}, {"complaint-files"})

    def test_wrong_media_type_rejected_before_upload(self):
        sign_in(self.client, "u-student")
        response = self.submit(images=[SimpleUploadedFile("notes.txt", b"x", content_type="text/plain")])
        self.assertEqual(response.status_code, 200)
        self.assertIn("images", response.context["form"].errors)
        self.assertEqual(self.hosted.uploads, [])
        self.assertEqual(self.hosted.complaints, [])

    def test_blank_reason_rejected(self):
        sign_in(self.client, "u-student")
        response = self.submit(reason="   ")
        self.assertIn("reason", response.context["form"].errors)
        self.assertEqual(self.hosted.complaints, [])

    def test_ticket_failure_reported_and_nothing_inserted(self):
        sign_in(self.client, "u-student")
        self.hosted.fail["generate_ticket"] = BackendError("rpc unavailable")
        response = self.submit()
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Submission failed: rpc unavailable")
        self.assertEqual(self.hosted.complaints, [])
        self.assertEqual(response.context["form"].data["reason"], "Noisy AC")

    def test_upload_failure_stops_before_ticket(self):
        sign_in(self.client, "u-student")
        self.hosted.fail["upload_file"] = BackendError("bucket full")
        response = self.submit(images=[SimpleUploadedFile("a.png", b"p", content_type="image/png")])
        self.assertContains(response, "Submission failed: bucket full")
        self.assertEqual(self.hosted.issued_tickets, set())
        self.assertEqual(self.hosted.complaints, [])

    def test_insert_failure_reported(self):
        sign_in(self.client, "u-student")
        self.hosted.fail["insert_complaint"] = BackendError("violates row-level security policy")
        response = self.submit()
        self.assertContains(response, "violates row-level security policy")
        self.assertNotContains(response, "submitted successfully")

    def test_page_shows_profile(self):
        sign_in(self.client, "u-student")
        response = self.client.get(reverse("complaints:submit"))
        self.assertContains(response, "Asha (student)")


class TrackComplaintTests(FlowTestCase):
    def setUp(self):
        super().setUp()
        sign_in(self.client, "u-student")
        self.submit()
        self.ticket = self.last_ticket()
        self.client.logout()

    def test_lookup_is_case_insensitive(self):
        for variant in (self.ticket, self.ticket.lower(), f"  {self.ticket.swapcase()} "):
            response = self.client.get(reverse("complaints:track"), {"ticket": variant})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.context["complaint"].ticket, self.ticket)

    def test_unknown_ticket_is_not_found_not_error(self):
        response = self.client.get(reverse("complaints:track"), {"ticket": "BT-ZZZZZZ"})
        self.assertTrue(response.context["not_found"])
        self.assertIsNone(response.context["error"])
        self.assertIsNone(response.context["complaint"])
        self.assertContains(response, "Ticket not found")

    def test_backend_failure_is_generic_error(self):
        self.hosted.fail["find_complaint_by_ticket"] = BackendError("connection reset")
        response = self.client.get(reverse("complaints:track"), {"ticket": self.ticket})
        self.assertFalse(response.context["not_found"])
        self.assertEqual(response.context["error"], "connection reset")

    def test_no_ticket_shows_empty_form(self):
        response = self.client.get(reverse("complaints:track"))
        self.assertIsNone(response.context["complaint"])
        self.assertFalse(response.context["not_found"])

    def test_shows_status_label(self):
        response = self.client.get(reverse("complaints:track"), {"ticket": self.ticket})
        self.assertContains(response, "Pending Review")
        self.assertContains(response, "Room 204 AC is loud at night")


class AdminReviewTests(FlowTestCase):
    def setUp(self):
        super().setUp()
        sign_in(self.client, "u-student")
        self.submit(reason="Broken chair")
        sign_in(self.client, "u-staff")
        self.submit(reason="Projector flickers")
        sign_in(self.client, "u-admin")
        self.submit(reason="Admin note")

    def test_non_admin_is_redirected_without_data(self):
        sign_in(self.client, "u-student")
        with patch("hosted.service.list_complaints_with_submitters") as listing:
            response = self.client.get(reverse("complaints:admin_review"))
        self.assertRedirects(response, reverse("home"), fetch_redirect_response=False)
        listing.assert_not_called()
        home = self.client.get(response["Location"])
        self.assertContains(home, "You do not have admin privileges")
        self.assertNotContains(home, "Broken chair")

    def test_anonymous_goes_to_login(self):
        self.client.logout()
        response = self.client.get(reverse("complaints:admin_review"))
        self.assertTrue(response["Location"].startswith(reverse("login")))

    def test_missing_profile_is_denied(self):
        sign_in(self.client, "u-nobody")
        response = self.client.get(reverse("complaints:admin_review"))
        self.assertRedirects(response, reverse("home"), fetch_redirect_response=False)

    def test_groups_by_submitter_role_newest_first(self):
        sign_in(self.client, "u-student")
        self.submit(reason="Second student complaint")
        sign_in(self.client, "u-admin")
        response = self.client.get(reverse("complaints:admin_review"))
        students = response.context["student_complaints"]
        staff = response.context["staff_complaints"]
        self.assertEqual([c.reason for c in students], ["Second student complaint", "Broken chair"])
        self.assertEqual([c.reason for c in staff], ["Projector flickers"])
        self.assertEqual(students[0].submitter.id_card_number, "ST-204")
        self.assertContains(response, "Student Complaints (2)")
        self.assertContains(response, "Staff Complaints (1)")
        self.assertNotContains(response, "Admin note")

    def test_status_can_move_to_any_value(self):
        complaint_id = self.hosted.complaints[0]["id"]
        ticket = self.hosted.complaints[0]["ticket"]
        for status in ("resolved", "pending", "resolving", "seen", "resolved", "pending"):
            response = self.client.post(
                reverse("complaints:update_status"), {"complaint_id": complaint_id, "status": status}
            )
            self.assertRedirects(response, reverse("complaints:admin_review"), fetch_redirect_response=False)
            tracked = self.client.get(reverse("complaints:track"), {"ticket": ticket})
            self.assertEqual(tracked.context["complaint"].status.value, status)

    def test_unknown_status_rejected(self):
        complaint_id = self.hosted.complaints[0]["id"]
        self.client.post(
            reverse("complaints:update_status"), {"complaint_id": complaint_id, "status": "closed"}
        )
        self.assertEqual(self.hosted.complaints[0]["status"], "pending")

    def test_update_failure_shown(self):
        response = self.client.post(
            reverse("complaints:update_status"), {"complaint_id": "missing", "status": "seen"}, follow=True
        )
        self.assertContains(response, "Update failed")

    def test_non_admin_cannot_update_status(self):
        sign_in(self.client, "u-staff")
        complaint_id = self.hosted.complaints[0]["id"]
        self.client.post(
            reverse("complaints:update_status"), {"complaint_id": complaint_id, "status": "resolved"}
        )
        self.assertEqual(self.hosted.complaints[0]["status"], "pending")

    def test_load_failure_shows_notice(self):
        self.hosted.fail["list_complaints_with_submitters"] = BackendError("timeout")
        response = self.client.get(reverse("complaints:admin_review"))
        self.assertEqual(response.status_code, 200)
        self.assertContains(response, "Error loading complaints: timeout")
        self.assertEqual(response.context["student_complaints"], [])


class EndToEndScenarioTests(FlowTestCase):
    def test_submit_track_resolve_track(self):
        sign_in(self.client, "u-student")
        self.submit(reason="Noisy AC", details="Room 204 AC is loud at night")
        ticket = self.last_ticket()
        self.assertRegex(ticket, TICKET_PATTERN)

        self.client.logout()
        tracked = self.client.get(reverse("complaints:track"), {"ticket": ticket})
        complaint = tracked.context["complaint"]
        self.assertEqual(complaint.status.value, "pending")
        self.assertEqual(complaint.reason, "Noisy AC")
        self.assertEqual(complaint.details, "Room 204 AC is loud at night")

        sign_in(self.client, "u-admin")
        self.client.post(
            reverse("complaints:update_status"), {"complaint_id": complaint.id, "status": "resolved"}
        )

        self.client.logout()
        tracked = self.client.get(reverse("complaints:track"), {"ticket": ticket})
        self.assertEqual(tracked.context["complaint"].status.value, "resolved")
        self.assertContains(tracked, "Complaint Resolved")
