import unittest
from dataclasses import replace

from lib.capture.consent import CONSENT_SELECTORS, dismiss_consent
from lib.capture.network import CaptureContext
from lib.capture.pagination import FixedTicks, StopWhenIdle, drive_pagination, policy_from_settings
from lib.capture.settings import ScrapeSettings

from fakes import API_URL, FAST_SETTINGS, FakePage, FakeResponse, track_item


class ConsentTests(unittest.IsolatedAsyncioTestCase):
    async def test_clicks_first_visible_candidate_and_stops(self):
        page = FakePage(visible_selectors={CONSENT_SELECTORS[2], CONSENT_SELECTORS[4]})
        settings = replace(FAST_SETTINGS, consent_settle_ms=2000)

        chosen = await dismiss_consent(page, settings)

        self.assertEqual(chosen, CONSENT_SELECTORS[2])
        clicks = [e[1] for e in page.events if e[0] == "click"]
        self.assertEqual(clicks, [CONSENT_SELECTORS[2]])
        waited = [e[1] for e in page.events if e[0] == "wait_for"]
        self.assertEqual(waited, list(CONSENT_SELECTORS[:3]))
        self.assertEqual(page.waits, [2000])

    async def test_no_banner_is_not_an_error(self):
        page = FakePage()
        self.assertIsNone(await dismiss_consent(page, FAST_SETTINGS))
        waited = [e[1] for e in page.events if e[0] == "wait_for"]
        self.assertEqual(waited, list(CONSENT_SELECTORS))
        self.assertEqual(page.waits, [])


class PaginationTests(unittest.IsolatedAsyncioTestCase):
    async def test_blind_loop_issues_every_tick(self):
        page = FakePage()
        settings = ScrapeSettings(initial_settle_ms=3000, scroll_pause_ms=700, final_settle_ms=2000)

        ticks = await drive_pagination(page, CaptureContext(), settings)

        self.assertEqual(ticks, 20)
        self.assertEqual(page.wheel_calls, [(0, 800)] * 20)
        self.assertEqual(page.waits, [3000] + [700] * 20 + [2000])

    async def test_responses_during_scroll_are_captured(self):
        page = FakePage(responses_per_tick={
            1: [FakeResponse(f"{API_URL}?offset=100", {"items": [track_item("B", "b")]})],
            2: [FakeResponse(f"{API_URL}?offset=100", {"items": [track_item("dup", "d")]})],
        })
        capture = CaptureContext()
        capture.attach(page)

        await drive_pagination(page, capture, FAST_SETTINGS)

        self.assertEqual(capture.offsets, [100])
        self.assertEqual(len(capture.fragments), 1)

    async def test_idle_policy_stops_after_quiet_ticks(self):
        page = FakePage(responses_per_tick={
            1: [FakeResponse(f"{API_URL}?offset=100", {"items": [track_item("B", "b")]})],
        })
        capture = CaptureContext()
        capture.attach(page)
        settings = replace(FAST_SETTINGS, scroll_ticks=20)

        ticks = await drive_pagination(page, capture, settings, StopWhenIdle(2))

        self.assertEqual(ticks, 3)

    def test_policy_selection(self):
        self.assertIsInstance(policy_from_settings(ScrapeSettings()), FixedTicks)
        policy = policy_from_settings(ScrapeSettings(stop_after_idle_ticks=4))
        self.assertIsInstance(policy, StopWhenIdle)
        self.assertEqual(policy.idle_ticks, 4)


if __name__ == "__main__":
    unittest.main()
