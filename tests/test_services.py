"""
Service-level Tests for Campaign Hub
Exercises services directly against a temporary SQLite database
"""
import sys
from pathlib import Path
# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest

from campaign_hub.core.errors import ForbiddenError, InternalError, NotFoundError
from campaign_hub.models.campaign import Campaign, CampaignEditHistory
from campaign_hub.services import slug as slug_module
from campaign_hub.services.base import guarded as real_guarded
from campaign_hub.services.campaign import CampaignService
from campaign_hub.services.edit_history import EditHistoryRecorder
from campaign_hub.services.progress import ProgressService
from campaign_hub.services.stats import StatsService
from campaign_hub.services.updates import CampaignUpdateService


@pytest.fixture
def fundraising_data(fundraising_payload):
    return dict(fundraising_payload)


class TestCreateAndResolve:

    @pytest.mark.asyncio
    async def test_slug_collision(self, db_session, owner, fundraising_data):
        first = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)
        second = await CampaignService.create_campaign(db_session, owner.id, {**fundraising_data, "title": "Save The Park"})
        third = await CampaignService.create_campaign(db_session, owner.id, {**fundraising_data, "title": "save the park!"})

        assert [first.slug, second.slug, third.slug] == ["save-the-park", "save-the-park-1", "save-the-park-2"]

        for created in (first, second, third):
            by_slug = await CampaignService.get_campaign(db_session, created.slug)
            by_id = await CampaignService.get_campaign(db_session, created.id)
            assert by_slug.id == by_id.id == created.id

    @pytest.mark.asyncio
    async def test_non_ascii_titles_share_fallback_slug(self, db_session, owner, fundraising_data):
        first = await CampaignService.create_campaign(db_session, owner.id, {**fundraising_data, "title": "日本語"})
        second = await CampaignService.create_campaign(db_session, owner.id, {**fundraising_data, "title": "日本語"})

        assert (first.slug, second.slug) == ("campaign", "campaign-1")
        assert (await CampaignService.get_campaign(db_session, "campaign-1")).title == "日本語"

    @pytest.mark.asyncio
    async def test_slug_race_retries_next_candidate(self, db_session, owner, fundraising_data):
        await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        # The first probe misses the existing row, so the insert hits the unique index
        real_unique_slug = slug_module.unique_slug
        calls = []

        def racing_unique_slug(title, exists):
            calls.append(title)
            if len(calls) == 1:
                return "save-the-park"
            return real_unique_slug(title, exists)

        with patch("campaign_hub.services.campaign.unique_slug", side_effect=racing_unique_slug):
            created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        assert created.slug == "save-the-park-1"
        assert len(calls) == 2
        assert db_session.query(Campaign).count() == 2

    @pytest.mark.asyncio
    async def test_slug_attempts_are_bounded(self, db_session, owner, fundraising_data):
        await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        with patch("campaign_hub.services.campaign.unique_slug", return_value="save-the-park"):
            with pytest.raises(InternalError):
                await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        assert db_session.query(Campaign).count() == 1


class TestViewCounter:

    @pytest.mark.asyncio
    async def test_concurrent_views_are_not_lost(self, db_session, session_factory, owner, fundraising_data):
        created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)
        workers, views_per_worker = 10, 10

        def view_many():
            session = session_factory()
            try:
                for _ in range(views_per_worker):
                    asyncio.run(ProgressService.increment_view(session, created.id))
            finally:
                session.close()

        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(view_many) for _ in range(workers)]
            for future in futures:
                future.result()

        db_session.expire_all()
        campaign = await CampaignService.get_campaign(db_session, created.id)
        assert campaign.view_count == workers * views_per_worker

    @pytest.mark.asyncio
    async def test_unknown_campaign(self, db_session):
        with pytest.raises(NotFoundError):
            await ProgressService.increment_view(db_session, "missing")


class TestProgressAndEdits:

    @pytest.mark.asyncio
    async def test_completed_flag_tracks_target(self, db_session, owner, fundraising_data):
        created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        below = await ProgressService.set_progress(db_session, created.id, owner.id, 999.99)
        reached = await ProgressService.set_progress(db_session, created.id, owner.id, 1000)
        exceeded = await ProgressService.set_progress(db_session, created.id, owner.id, 5000)

        assert below.progress.completed is False
        assert reached.progress.completed is True
        assert exceeded.progress.completed is True
        assert exceeded.current_amount == 5000.0
        assert exceeded.progress.remaining == 0.0

    @pytest.mark.asyncio
    async def test_not_found_before_forbidden(self, db_session, owner, stranger, fundraising_data):
        created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        with pytest.raises(ForbiddenError):
            await CampaignService.set_visibility(db_session, created.id, stranger.id, True)
        with pytest.raises(NotFoundError):
            await CampaignService.set_visibility(db_session, "missing", stranger.id, True)
        with pytest.raises(ForbiddenError):
            await CampaignService.delete_campaign(db_session, created.slug, stranger.id)
        with pytest.raises(ForbiddenError):
            await CampaignUpdateService.create_update(
                db_session, created.id, stranger.id, {"title": "t", "description": "d", "type": "general"}
            )

    @pytest.mark.asyncio
    async def test_failed_audit_write_keeps_edit(self, db_session, owner, fundraising_data):
        created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)

        async def failing_history(db, operation, func, **kwargs):
            if operation == "record edit history":
                raise InternalError("Failed to record edit history")
            return await real_guarded(db, operation, func, **kwargs)

        with patch("campaign_hub.services.campaign.guarded", side_effect=failing_history):
            updated = await CampaignService.update_campaign(db_session, created.id, owner.id, {"title": "Renamed"})

        assert updated.title == "Renamed"
        db_session.rollback()
        assert db_session.query(CampaignEditHistory).count() == 0

        history = await EditHistoryRecorder.list_for_campaign(db_session, created.id)
        assert history == []

    @pytest.mark.asyncio
    async def test_unknown_editor_name(self, db_session, owner, fundraising_data):
        created = await CampaignService.create_campaign(db_session, owner.id, fundraising_data)
        await CampaignService.update_campaign(db_session, created.id, owner.id, {"title": "Renamed"})

        # The owner never went through the HTTP identity resolver, so no users row exists
        history = await EditHistoryRecorder.list_for_campaign(db_session, created.slug)
        assert history[0].edited_by.name == "Unknown User"


class TestStats:

    @pytest.mark.asyncio
    async def test_funds_total_matches_campaigns(self, db_session, owner, fundraising_data):
        amounts = [10, 20.5, 300]
        for index, amount in enumerate(amounts):
            created = await CampaignService.create_campaign(
                db_session, owner.id, {**fundraising_data, "title": f"Drive {index}"}
            )
            await ProgressService.set_progress(db_session, created.id, owner.id, amount)

        stats = await StatsService.platform_stats(db_session)
        assert stats.engagement.total_funds_raised == pytest.approx(sum(amounts))
        assert stats.campaigns.fundraising == 3
