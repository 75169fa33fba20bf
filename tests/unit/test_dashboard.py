import unittest

from portfolio_admin.core.dashboard import DashboardOrchestrator
from portfolio_admin.core.errors import (
    ConflictError,
    MediaTransferError,
    NotFoundError,
    RateLimitError,
    ServerError,
    UploadValidationError,
)
from portfolio_admin.core.retry import RemoteCallResult, RetryExecutor
from portfolio_admin.core.uploads import MediaFile, UploadedMedia


class NoSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class FakeResource:
    """In-memory stand-in for a ContentAPI resource. Methods are blocking, like the real ones."""

    def __init__(self, items=None):
        self.items = [dict(i) for i in items or []]
        self.calls = []
        self.errors = {}
        self.omit_entity = False
        self._counter = 0

    def _maybe_fail(self, method):
        pending = self.errors.get(method)
        if pending:
            raise pending.pop(0)

    def count(self, method):
        return sum(1 for call in self.calls if call[0] == method)

    def list(self, params=None):
        self.calls.append(("list",))
        self._maybe_fail("list")
        return [dict(i) for i in self.items]

    def create(self, payload):
        self.calls.append(("create", payload))
        self._maybe_fail("create")
        self._counter += 1
        entity = dict(payload, _id=f"new-{self._counter}")
        self.items.append(entity)
        return None if self.omit_entity else dict(entity)

    def update(self, entity_id, payload):
        self.calls.append(("update", entity_id, payload))
        self._maybe_fail("update")
        entity = dict(payload, _id=entity_id)
        self.items = [entity if i["_id"] == entity_id else i for i in self.items]
        return None if self.omit_entity else dict(entity)

    def delete(self, entity_id):
        self.calls.append(("delete", entity_id))
        self._maybe_fail("delete")
        self.items = [i for i in self.items if i["_id"] != entity_id]
        return True


class FakeResumes(FakeResource):
    def upload(self, filename, content, title, description="", media_type="application/pdf"):
        self.calls.append(("upload", filename, title))
        self._maybe_fail("upload")
        entity = {"_id": "r-new", "title": title, "fileName": filename, "isActive": False}
        self.items.insert(0, entity)
        return dict(entity)

    def toggle(self, entity_id):
        self.calls.append(("toggle", entity_id))
        for item in self.items:
            item["isActive"] = item["_id"] == entity_id
        return next(dict(i) for i in self.items if i["_id"] == entity_id)


class FakeContacts(FakeResource):
    def update_status(self, entity_id, status):
        item = next(i for i in self.items if i["_id"] == entity_id)
        return self.update(entity_id, dict(item, status=status))


class FakeAnalytics:
    def __init__(self):
        self.errors = []

    def overview(self):
        if self.errors:
            raise self.errors.pop(0)
        return {"totalVisits": 120, "uniqueVisitors": 80}


class FakeAPI:
    def __init__(self):
        self.projects = FakeResource([{"_id": "p1", "title": "Site", "slug": "my-site"}])
        self.blogs = FakeResource([
            {"_id": "b1", "publishedAt": "2023-01-01", "createdAt": "2023-01-01"},
            {"_id": "b2", "publishedAt": "2024-01-01", "createdAt": "2024-01-01"},
        ])
        self.experience = FakeResource([
            {"_id": "e1", "startDate": "2023-01-01"},
            {"_id": "e2", "startDate": "2024-06-01"},
        ])
        self.quotes = FakeResource([{"_id": "q1"}, {"_id": "q2"}])
        self.skills = FakeResource([{"_id": "s1"}])
        self.resumes = FakeResumes([
            {"_id": "r1", "isActive": True},
            {"_id": "r2", "isActive": False},
        ])
        self.contacts = FakeContacts([{"_id": "c1", "status": "new"}])
        self.analytics = FakeAnalytics()


class FakeUploader:
    """Rejects non-PNG files, fails files larger than ``max_bytes`` and uploads the rest."""

    def __init__(self, max_bytes=5):
        self.max_bytes = max_bytes
        self.batches = []

    async def upload_batch(self, files, options=None):
        self.batches.append((list(files), options))
        results = []
        for f in files:
            if f.media_type != "image/png":
                results.append(RemoteCallResult.failure(UploadValidationError("File must be an image"), attempts=0))
            elif f.size > self.max_bytes:
                results.append(RemoteCallResult.failure(
                    MediaTransferError("413", user_message="Upload failed: too big")
                ))
            else:
                media = UploadedMedia(url=f"https://cdn.example.com/{f.filename}",
                                      media_id=f"{options.folder}/{f.filename}", original_filename=f.filename)
                results.append(RemoteCallResult.success(media))
        return results


class DashboardTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.api = FakeAPI()
        self.uploader = FakeUploader()
        self.sleep = NoSleep()
        self.confirmations = []
        self.answer = True
        self.dashboard = DashboardOrchestrator(
            self.api,
            self.uploader,
            retry_executor=RetryExecutor(sleep=self.sleep),
            confirm=self._confirm,
        )
        self.addCleanup(self.dashboard.close)

    def _confirm(self, message):
        self.confirmations.append(message)
        return self.answer


class TestDashboardLoad(DashboardTestCase):
    async def test_load_builds_ordered_collections(self):
        state = await self.dashboard.load()

        self.assertIsNone(state.error)
        self.assertFalse(state.is_loading)
        self.assertEqual(state.analytics["totalVisits"], 120)
        self.assertEqual(state.analytics["countryStats"], [])
        self.assertEqual(state.collection("experience").ids(), ["e2", "e1"])
        self.assertEqual(state.collection("blog").ids(), ["b2", "b1"])
        self.assertEqual(len(state.collection("contact")), 1)

    async def test_non_critical_failures_degrade(self):
        self.api.analytics.errors.append(ServerError("down"))
        self.api.resumes.errors["list"] = [ServerError("down")]

        state = await self.dashboard.load()

        self.assertIsNone(state.error)
        self.assertEqual(state.analytics["totalVisits"], 0)
        self.assertEqual(len(state.collection("resume")), 0)
        self.assertEqual(len(state.collection("contact")), 1)
        self.assertEqual(len(state.collection("project")), 1)

    async def test_contacts_failure_fails_the_dashboard(self):
        self.api.contacts.errors["list"] = [NotFoundError("gone")]

        state = await self.dashboard.load()

        self.assertEqual(state.error, "Failed to load dashboard data. Please try again.")
        self.assertTrue(state.can_retry)

    async def test_critical_failure_sets_retryable_error(self):
        self.api.projects.errors["list"] = [ServerError("down", status_code=500)]

        state = await self.dashboard.load()
        self.assertEqual(state.error, "Failed to load dashboard data. Please try again.")
        self.assertTrue(state.can_retry)

        state = await self.dashboard.retry_load()
        self.assertIsNone(state.error)
        self.assertFalse(state.can_retry)
        self.assertEqual(state.collection("project").ids(), ["p1"])

    async def test_rate_limited_fetch_is_retried(self):
        self.api.blogs.errors["list"] = [RateLimitError("429", status_code=429)]

        state = await self.dashboard.load()

        self.assertIsNone(state.error)
        self.assertEqual(self.api.blogs.count("list"), 2)
        self.assertEqual(self.sleep.delays, [0.5])


class TestDashboardEditors(DashboardTestCase):
    async def asyncSetUp(self):
        await self.dashboard.load()

    async def test_create_experience_inserted_in_order(self):
        wizard = self.dashboard.open_editor("experience")
        wizard.update_field("position", "Engineer")
        wizard.update_field("company", "Acme")
        wizard.update_field("start_date", "2023-06-01")
        wizard.update_field("description", "Built things")

        self.assertTrue(await self.dashboard.submit(wizard))

        self.assertTrue(wizard.closed)
        self.assertEqual(self.dashboard.state.collection("experience").ids(), ["e2", "new-1", "e1"])

    async def test_update_replaces_entity(self):
        entity = self.dashboard.state.collection("quote").find("q2")
        wizard = self.dashboard.open_editor("quote", dict(entity, text="New text", author="Ada", field="Computing"))

        self.assertTrue(await self.dashboard.submit(wizard))

        quotes = self.dashboard.state.collection("quote")
        self.assertEqual(quotes.ids(), ["q1", "q2"])
        self.assertEqual(quotes.find("q2")["text"], "New text")

    async def test_missing_entity_in_response_triggers_refetch(self):
        self.api.quotes.omit_entity = True
        wizard = self.dashboard.open_editor("quote")
        for name, value in (("text", "Simplicity"), ("author", "Ada"), ("field_of_work", "Computing")):
            wizard.update_field(name, value)

        self.assertTrue(await self.dashboard.submit(wizard))

        self.assertEqual(self.api.quotes.count("list"), 2)
        self.assertEqual(self.dashboard.state.collection("quote").ids(), ["q1", "q2", "new-1"])

    async def test_pending_media_uploaded_before_save(self):
        wizard = self.dashboard.open_editor("project")
        wizard.update_field("title", "Shop Front")
        wizard.update_field("short_description", "Short")
        wizard.update_field("long_description", "Long")
        wizard.draft.pending_media = [
            MediaFile("a.png", b"a", "image/png"),
            MediaFile("big.png", b"0123456789", "image/png"),
            MediaFile("notes.txt", b"n", "text/plain"),
        ]

        self.assertTrue(await self.dashboard.submit(wizard))

        files, options = self.uploader.batches[0]
        self.assertEqual(options.folder, "portfolio/projects")
        payload = self.api.projects.calls[-1][1]
        self.assertEqual(payload["slug"], "shop-front")
        self.assertEqual(payload["images"][0]["url"], "https://cdn.example.com/a.png")
        self.assertEqual(payload["images"][0]["type"], "cover")
        self.assertEqual(len(payload["images"]), 1)
        self.assertEqual(
            self.dashboard.state.notices,
            ["big.png: Upload failed: too big", "notes.txt: File must be an image"],
        )
        self.assertEqual(wizard.draft.pending_media, [])
        self.assertEqual(self.dashboard.state.collection("project").ids(), ["new-1", "p1"])

    async def test_server_conflict_keeps_editor_open(self):
        self.api.projects.errors["create"] = [ConflictError("E11000 duplicate key", status_code=400)]
        wizard = self.dashboard.open_editor("project")
        wizard.update_field("title", "Another Site")
        wizard.update_field("short_description", "Short")
        wizard.update_field("long_description", "Long")

        self.assertFalse(await self.dashboard.submit(wizard))

        self.assertFalse(wizard.closed)
        self.assertIn("already exists", wizard.submit_error)
        self.assertEqual(self.dashboard.state.collection("project").ids(), ["p1"])

    async def test_non_numeric_priority_keeps_editor_open(self):
        wizard = self.dashboard.open_editor("project")
        wizard.update_field("title", "Priority Test")
        wizard.update_field("short_description", "Short")
        wizard.update_field("long_description", "Long")
        wizard.update_field("priority", "high")
        wizard.draft.pending_media = [MediaFile("a.png", b"a", "image/png")]

        self.assertFalse(await self.dashboard.submit(wizard))

        self.assertFalse(wizard.closed)
        self.assertFalse(wizard.is_submitting)
        self.assertEqual(wizard.current_step, 1)
        self.assertEqual(wizard.step_errors, {"priority": "Priority must be a number"})
        self.assertIn("priority", wizard.submit_error)
        self.assertEqual(wizard.draft.priority, "high")
        self.assertEqual(self.uploader.batches, [])
        self.assertEqual(self.api.projects.count("create"), 0)

        wizard.update_field("priority", "2")
        self.assertTrue(await self.dashboard.submit(wizard))
        self.assertEqual(self.api.projects.calls[-1][1]["priority"], 2)

    async def test_non_numeric_quote_priority_from_first_step(self):
        wizard = self.dashboard.open_editor("quote")
        for name, value in (("text", "Simplicity"), ("author", "Ada"),
                            ("field_of_work", "Computing"), ("priority", "top")):
            wizard.update_field(name, value)

        self.assertFalse(await self.dashboard.submit(wizard))

        self.assertIn("priority", wizard.step_errors)
        self.assertEqual(self.api.quotes.count("create"), 0)

    async def test_local_slug_conflict_blocks_create(self):
        wizard = self.dashboard.open_editor("project")
        wizard.update_field("title", "My Site")
        wizard.update_field("short_description", "Short")
        wizard.update_field("long_description", "Long")

        self.assertFalse(await self.dashboard.submit(wizard))

        self.assertIn("slug", wizard.step_errors)
        self.assertEqual(self.api.projects.count("create"), 0)

    async def test_editing_keeps_own_slug(self):
        entity = {"_id": "p1", "title": "Site", "slug": "my-site", "shortDescription": "S",
                  "longDescription": "L", "category": "Portfolio", "projectType": "Frontend"}
        wizard = self.dashboard.open_editor("project", entity)

        self.assertTrue(await self.dashboard.submit(wizard))
        self.assertEqual(self.api.projects.calls[-1][0], "update")


class TestDashboardDeletes(DashboardTestCase):
    async def asyncSetUp(self):
        await self.dashboard.load()

    async def test_delete_requires_confirmation(self):
        self.answer = False
        self.assertFalse(await self.dashboard.delete("quote", "q1"))
        self.assertEqual(self.api.quotes.count("delete"), 0)
        self.assertEqual(
            self.confirmations,
            ["Are you sure you want to delete this quote? This action cannot be undone."],
        )

    async def test_confirmed_delete_removes_entity(self):
        self.assertTrue(await self.dashboard.delete("experience", "e2"))
        self.assertEqual(self.dashboard.state.collection("experience").ids(), ["e1"])

    async def test_async_confirmation(self):
        async def confirm(message):
            return True

        self.dashboard.confirm = confirm
        self.assertTrue(await self.dashboard.delete("quote", "q1"))
        self.assertEqual(self.dashboard.state.collection("quote").ids(), ["q2"])

    async def test_no_confirmation_callback_refuses(self):
        self.dashboard.confirm = None
        self.assertFalse(await self.dashboard.delete("quote", "q1"))
        self.assertEqual(self.api.quotes.count("delete"), 0)

    async def test_failed_delete_leaves_collection(self):
        self.api.quotes.errors["delete"] = [ServerError("boom", status_code=500)]

        self.assertFalse(await self.dashboard.delete("quote", "q1"))

        self.assertEqual(self.dashboard.state.collection("quote").ids(), ["q1", "q2"])
        self.assertEqual(len(self.dashboard.state.notices), 1)
        self.assertTrue(self.dashboard.state.notices[0].startswith("Failed to delete quote."))

    async def test_unknown_kind(self):
        with self.assertRaises(ValueError):
            await self.dashboard.delete("nonsense", "x")


class TestDashboardResumesAndMessages(DashboardTestCase):
    async def asyncSetUp(self):
        await self.dashboard.load()

    async def test_resume_upload(self):
        ok = await self.dashboard.upload_resume(MediaFile("cv.pdf", b"%PDF-1.4", "application/pdf"), title="CV")
        self.assertTrue(ok)
        self.assertEqual(self.dashboard.state.collection("resume").ids(), ["r-new", "r1", "r2"])

    async def test_resume_upload_rejects_non_pdf(self):
        ok = await self.dashboard.upload_resume(MediaFile("cv.docx", b"data", "application/msword"))
        self.assertFalse(ok)
        self.assertEqual(self.api.resumes.count("upload"), 0)
        self.assertEqual(self.dashboard.state.notices, ["cv.docx: File must be a PDF document"])

    async def test_default_resume_title(self):
        await self.dashboard.upload_resume(MediaFile("cv.pdf", b"%PDF", "application/pdf"))
        self.assertTrue(self.api.resumes.calls[-1][2].startswith("Resume - "))

    async def test_toggle_resume_deactivates_others(self):
        self.assertTrue(await self.dashboard.toggle_resume("r2"))
        resumes = self.dashboard.state.collection("resume")
        self.assertTrue(resumes.find("r2")["isActive"])
        self.assertFalse(resumes.find("r1")["isActive"])

    async def test_contact_status(self):
        self.assertTrue(await self.dashboard.update_contact_status("c1", "read"))
        self.assertEqual(self.dashboard.state.collection("contact").find("c1")["status"], "read")

        self.assertFalse(await self.dashboard.update_contact_status("c1", "spam"))
        self.assertEqual(self.dashboard.state.notices, ["Unknown message status 'spam'"])


if __name__ == '__main__':
    unittest.main()
