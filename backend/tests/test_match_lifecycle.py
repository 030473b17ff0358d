import asyncio
from types import SimpleNamespace

import pytest

from league_elo.exceptions import (
    AuthorizationError,
    ConflictError,
    NotAMemberError,
    NotFoundError,
    ValidationError,
)
from league_elo.services.match_state import MatchStatus, RatingUpdateMode
from league_elo.services.matches import MatchLifecycle, MatchResult

WIN_2_0 = MatchResult(
    player1_sets_won=2,
    player2_sets_won=0,
    match_format="best_of_3",
    player1_points_total=22,
    player2_points_total=10,
)


def _league(seeder, mode=RatingUpdateMode.IMMEDIATE):
    async def run():
        admin = await seeder.user("admin")
        alice = await seeder.user("alice")
        bob = await seeder.user("bob")
        carol = await seeder.user("carol")
        outsider = await seeder.user("outsider")
        root = await seeder.user("root", is_admin=True)
        league = await seeder.league(mode=mode)
        await seeder.roster(league, admin, is_admin=True)
        return SimpleNamespace(
            admin=admin,
            alice=alice,
            bob=bob,
            carol=carol,
            outsider=outsider,
            root=root,
            league=league,
            alice_roster=await seeder.roster(league, alice),
            bob_roster=await seeder.roster(league, bob),
            carol_roster=await seeder.roster(league, carol),
        )

    return asyncio.run(run())


async def _ratings(store, *rosters):
    rows = await store.all("SELECT id, current_rating FROM league_roster ORDER BY id")
    by_id = {r["id"]: r["current_rating"] for r in rows}
    return tuple(by_id[r.id] for r in rosters)


async def _notifications(store, user):
    return await store.all(
        "SELECT type, title, message, related_id FROM notifications WHERE user_id = ? ORDER BY id",
        (user.id,),
    )


def test_submit_stores_preview_without_touching_ratings(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        result = MatchResult(
            player1_sets_won=2,
            player2_sets_won=1,
            match_format="best_of_3",
            player1_points_total=30,
            player2_points_total=25,
            sets=[
                {"player1_score": 11, "player2_score": 8},
                {"player1_score": 8, "player2_score": 11},
                {"player1_score": 11, "player2_score": 6},
            ],
        )
        created = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, result)
        return (
            created,
            await _ratings(store, env.alice_roster, env.bob_roster),
            await _notifications(store, env.bob),
        )

    created, ratings, bob_notes = asyncio.run(run())
    match = created.match

    assert match.status is MatchStatus.SUBMITTED
    assert match.player1_roster_id == env.alice_roster.id
    assert match.winner_roster_id == env.alice_roster.id
    assert match.reported_by == env.alice.id
    assert (match.player1_rating_before, match.player2_rating_before) == (1200, 1200)
    assert match.player1_rating_after == 1200 + created.preview.delta
    assert match.player2_rating_after == 1200 - created.preview.delta
    assert [(s.set_number, s.player1_score) for s in created.sets] == [(1, 11), (2, 8), (3, 11)]
    assert ratings == (1200, 1200)
    assert bob_notes == [
        {
            "type": "match_request",
            "title": "New Match Result",
            "message": 'alice has submitted a match result in "Tuesday Ladder"',
            "related_id": match.id,
        }
    ]


def test_submit_rejects_illegal_result(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    draw = MatchResult(player1_sets_won=2, player2_sets_won=2, match_format="best_of_3")

    with pytest.raises(ValidationError) as exc:
        asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, draw))

    assert "winner" in exc.value.detail
    assert asyncio.run(store.get("SELECT COUNT(*) AS total FROM matches"))["total"] == 0


def test_submit_requires_membership(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    with pytest.raises(NotAMemberError):
        asyncio.run(lifecycle.submit(env.league.id, env.outsider, env.bob_roster.id, WIN_2_0))

    other = asyncio.run(seeder.league("Other League"))
    stranger = asyncio.run(seeder.roster(other, display_name="Stranger"))
    with pytest.raises(NotAMemberError):
        asyncio.run(lifecycle.submit(env.league.id, env.alice, stranger.id, WIN_2_0))


def test_submit_against_yourself_is_rejected(store, seeder) -> None:
    env = _league(seeder)

    with pytest.raises(ValidationError) as exc:
        asyncio.run(MatchLifecycle(store).submit(env.league.id, env.alice, env.alice_roster.id, WIN_2_0))

    assert exc.value.code == "self_match"


def test_submit_unknown_league(store, seeder) -> None:
    env = _league(seeder)

    with pytest.raises(NotFoundError):
        asyncio.run(MatchLifecycle(store).submit(999, env.alice, env.bob_roster.id, WIN_2_0))


def test_placeholder_opponent_gets_no_notification(store, seeder) -> None:
    env = _league(seeder)
    guest = asyncio.run(seeder.roster(env.league, display_name="Walk-in"))

    async def run():
        await MatchLifecycle(store).submit(env.league.id, env.alice, guest.id, WIN_2_0)
        return await store.get("SELECT COUNT(*) AS total FROM notifications")

    assert asyncio.run(run())["total"] == 0


def test_immediate_accept_applies_ratings_and_history(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        outcome = await lifecycle.accept(created.match.id, env.admin)
        match, _ = await lifecycle.get(created.match.id, env.admin)
        history = await store.all(
            "SELECT roster_id, rating_before, rating_after, rating_change FROM rating_history "
            "WHERE match_id = ? ORDER BY roster_id",
            (match.id,),
        )
        return (
            outcome,
            match,
            history,
            await _ratings(store, env.alice_roster, env.bob_roster),
            await _notifications(store, env.alice),
            await _notifications(store, env.bob),
        )

    outcome, match, history, ratings, alice_notes, bob_notes = asyncio.run(run())

    assert outcome.status is MatchStatus.ACCEPTED_APPLIED
    assert not outcome.deferred
    assert outcome.applied.delta.delta == 17
    assert match.status is MatchStatus.ACCEPTED_APPLIED
    assert match.accepted_by == env.admin.id
    assert match.accepted_at is not None and match.rating_applied_at is not None
    assert ratings == (1217, 1183) == (match.player1_rating_after, match.player2_rating_after)
    assert history == [
        {"roster_id": env.alice_roster.id, "rating_before": 1200, "rating_after": 1217, "rating_change": 17},
        {"roster_id": env.bob_roster.id, "rating_before": 1200, "rating_after": 1183, "rating_change": -17},
    ]
    assert alice_notes[-1]["type"] == "match_accepted"
    assert alice_notes[-1]["message"].endswith("Rating change: +17")
    assert bob_notes[-1]["message"].endswith("Rating change: -17")


def test_accept_uses_ratings_at_acceptance_time(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        first = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        second = await lifecycle.submit(env.league.id, env.alice, env.carol_roster.id, WIN_2_0)
        await lifecycle.accept(first.match.id, env.admin)
        await lifecycle.accept(second.match.id, env.admin)
        match, _ = await lifecycle.get(second.match.id, env.admin)
        history = await store.get(
            "SELECT rating_before, rating_after, rating_change FROM rating_history "
            "WHERE match_id = ? AND roster_id = ?",
            (second.match.id, env.alice_roster.id),
        )
        return second, match, history, await _ratings(store, env.alice_roster, env.carol_roster)

    second, match, history, ratings = asyncio.run(run())

    # the stored preview was computed from 1200/1200; acceptance recomputes from 1217/1200
    assert second.preview.delta == 17
    assert history == {"rating_before": 1217, "rating_after": 1233, "rating_change": 16}
    assert (match.player1_rating_before, match.player1_rating_after) == (1217, 1233)
    assert ratings == (1233, 1184)


def test_accept_twice_is_a_conflict_without_writes(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        await lifecycle.accept(created.match.id, env.admin)
        before = await store.get(
            "SELECT (SELECT COUNT(*) FROM rating_history) AS history, "
            "(SELECT COUNT(*) FROM notifications) AS notes"
        )
        with pytest.raises(ConflictError) as exc:
            await lifecycle.accept(created.match.id, env.root)
        after = await store.get(
            "SELECT (SELECT COUNT(*) FROM rating_history) AS history, "
            "(SELECT COUNT(*) FROM notifications) AS notes"
        )
        return exc.value, before, after, await _ratings(store, env.alice_roster, env.bob_roster)

    error, before, after, ratings = asyncio.run(run())

    assert error.code == "match_already_accepted"
    assert before == after
    assert ratings == (1217, 1183)


async def _history_count(store) -> int:
    row = await store.get("SELECT COUNT(*) AS total FROM rating_history")
    return row["total"]


def test_concurrent_accepts_apply_once(store, seeder, gated_transactions) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))
    gated_transactions(2)

    async def run():
        results = await asyncio.gather(
            lifecycle.accept(created.match.id, env.admin),
            lifecycle.accept(created.match.id, env.root),
            return_exceptions=True,
        )
        return results, await _history_count(store), await _ratings(
            store, env.alice_roster, env.bob_roster
        )

    results, history, ratings = asyncio.run(run())

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(conflicts) == 1
    assert conflicts[0].code == "match_already_accepted"
    winners = [r for r in results if not isinstance(r, ConflictError)]
    assert [w.status for w in winners] == [MatchStatus.ACCEPTED_APPLIED]
    assert history == 2
    assert ratings == (1217, 1183)


def test_concurrent_accept_and_reject_have_one_winner(store, seeder, gated_transactions) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))
    gated_transactions(2)

    async def run():
        results = await asyncio.gather(
            lifecycle.accept(created.match.id, env.admin),
            lifecycle.reject(created.match.id, env.admin, "duplicate"),
            return_exceptions=True,
        )
        row = await store.get("SELECT status FROM matches WHERE id = ?", (created.match.id,))
        return results, row, await _history_count(store), await _ratings(
            store, env.alice_roster, env.bob_roster
        )

    (accepted, rejected), row, history, ratings = asyncio.run(run())

    assert isinstance(accepted, ConflictError) != isinstance(rejected, ConflictError)
    if isinstance(rejected, ConflictError):
        assert row == {"status": "accepted_applied"}
        assert history == 2
        assert ratings == (1217, 1183)
    else:
        assert rejected is None
        assert row is None
        assert history == 0
        assert ratings == (1200, 1200)


def test_concurrent_update_and_accept_never_lose_the_result(
    store, seeder, gated_transactions
) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))
    corrected = MatchResult(
        player1_sets_won=1,
        player2_sets_won=2,
        match_format="best_of_3",
        player1_points_total=10,
        player2_points_total=22,
    )
    gated_transactions(2)

    async def run():
        results = await asyncio.gather(
            lifecycle.update(created.match.id, env.alice, corrected),
            lifecycle.accept(created.match.id, env.admin),
            return_exceptions=True,
        )
        match = await store.get(
            "SELECT status, player1_sets_won, player2_sets_won, player1_rating_after, "
            "player2_rating_after FROM matches WHERE id = ?",
            (created.match.id,),
        )
        return results, match, await _history_count(store), await _ratings(
            store, env.alice_roster, env.bob_roster
        )

    (updated, accepted), match, history, ratings = asyncio.run(run())

    # accept always lands; the update either went first or lost to it
    assert accepted.status is MatchStatus.ACCEPTED_APPLIED
    assert match["status"] == "accepted_applied"
    assert history == 2
    assert ratings == (match["player1_rating_after"], match["player2_rating_after"])
    if isinstance(updated, ConflictError):
        assert updated.code == "match_already_accepted"
        assert (match["player1_sets_won"], match["player2_sets_won"]) == (2, 0)
    else:
        assert (match["player1_sets_won"], match["player2_sets_won"]) == (1, 2)
        assert ratings[0] < 1200 < ratings[1]


def test_submit_rejects_fractional_totals(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    fractional = MatchResult(
        player1_sets_won=2.9,
        player2_sets_won=0.4,
        match_format="best_of_3",
        player1_points_total=21.9,
        player2_points_total=10.2,
    )

    with pytest.raises(ValidationError):
        asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, fractional))

    assert asyncio.run(store.get("SELECT COUNT(*) AS total FROM matches"))["total"] == 0


def test_accept_requires_admin(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.accept(created.match.id, env.bob))

    outcome = asyncio.run(lifecycle.accept(created.match.id, env.root))
    assert outcome.status is MatchStatus.ACCEPTED_APPLIED


def test_accept_unknown_match(store, seeder) -> None:
    env = _league(seeder)

    with pytest.raises(NotFoundError) as exc:
        asyncio.run(MatchLifecycle(store).accept(12345, env.admin))

    assert exc.value.code == "match_not_found"


def test_deferred_accept_leaves_ratings_alone(store, seeder) -> None:
    env = _league(seeder, RatingUpdateMode.WEEKLY)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        outcome = await lifecycle.accept(created.match.id, env.admin)
        match, _ = await lifecycle.get(created.match.id, env.admin)
        history = await store.get("SELECT COUNT(*) AS total FROM rating_history")
        return (
            outcome,
            match,
            history,
            await _ratings(store, env.alice_roster, env.bob_roster),
            await _notifications(store, env.alice),
        )

    outcome, match, history, ratings, alice_notes = asyncio.run(run())

    assert outcome.deferred and outcome.applied is None
    assert match.status is MatchStatus.ACCEPTED_PENDING
    assert match.status.is_accepted and not match.status.rating_applied
    assert match.rating_applied_at is None
    assert ratings == (1200, 1200)
    assert history["total"] == 0
    assert alice_notes[-1]["type"] == "match_accepted_deferred"
    assert "weekly consolidation" in alice_notes[-1]["message"]


def test_reject_deletes_match_and_notifies_players(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(
            env.league.id,
            env.alice,
            env.bob_roster.id,
            MatchResult(
                player1_sets_won=1,
                player2_sets_won=0,
                match_format="best_of_1",
                sets=[{"player1_score": 11, "player2_score": 3}],
            ),
        )
        await lifecycle.reject(created.match.id, env.admin, "score was 11-9")
        remaining = await store.get(
            "SELECT (SELECT COUNT(*) FROM matches) AS matches, "
            "(SELECT COUNT(*) FROM match_sets) AS sets"
        )
        return remaining, await _notifications(store, env.alice), await _notifications(store, env.bob)

    remaining, alice_notes, bob_notes = asyncio.run(run())

    assert remaining == {"matches": 0, "sets": 0}
    for notes in (alice_notes, bob_notes):
        assert notes[-1] == {
            "type": "match_rejected",
            "title": "Match Rejected",
            "message": 'Your match result in "Tuesday Ladder" has been rejected: score was 11-9',
            "related_id": None,
        }


def test_reject_accepted_match_is_a_conflict(store, seeder) -> None:
    env = _league(seeder, RatingUpdateMode.MONTHLY)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        await lifecycle.accept(created.match.id, env.admin)
        with pytest.raises(ConflictError):
            await lifecycle.reject(created.match.id, env.admin, None)
        return await store.get("SELECT status FROM matches WHERE id = ?", (created.match.id,))

    assert asyncio.run(run()) == {"status": "accepted_pending"}


def test_reject_requires_admin(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.reject(created.match.id, env.alice, "nope"))


def test_update_recomputes_snapshot_and_replaces_sets(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        created = await lifecycle.submit(
            env.league.id,
            env.alice,
            env.bob_roster.id,
            MatchResult(
                player1_sets_won=2,
                player2_sets_won=0,
                match_format="best_of_3",
                sets=[
                    {"player1_score": 11, "player2_score": 5},
                    {"player1_score": 11, "player2_score": 5},
                ],
            ),
        )
        corrected = MatchResult(
            player1_sets_won=1,
            player2_sets_won=2,
            match_format="best_of_3",
            player1_points_total=10,
            player2_points_total=22,
            sets=[
                {"player1_score": 11, "player2_score": 5},
                {"player1_score": 0, "player2_score": 11},
                {"player1_score": 9, "player2_score": 11},
            ],
        )
        updated = await lifecycle.update(created.match.id, env.bob, corrected)
        _, sets = await lifecycle.get(created.match.id, env.bob)
        return updated, sets

    updated, sets = asyncio.run(run())

    assert updated.winner_roster_id == env.bob_roster.id
    assert (updated.player1_sets_won, updated.player2_sets_won) == (1, 2)
    assert updated.player1_rating_after < 1200 < updated.player2_rating_after
    assert updated.status is MatchStatus.SUBMITTED
    assert [(s.player1_score, s.player2_score) for s in sets] == [(11, 5), (0, 11), (9, 11)]


def test_update_is_limited_to_participants_and_unaccepted_matches(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.update(created.match.id, env.carol, WIN_2_0))

    asyncio.run(lifecycle.accept(created.match.id, env.admin))
    with pytest.raises(ConflictError):
        asyncio.run(lifecycle.update(created.match.id, env.alice, WIN_2_0))


def test_remove_is_global_admin_only_and_unaccepted_only(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    first = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))
    second = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.carol_roster.id, WIN_2_0))

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.remove(first.match.id, env.admin))

    asyncio.run(lifecycle.remove(first.match.id, env.root))
    with pytest.raises(NotFoundError):
        asyncio.run(lifecycle.get(first.match.id, env.root))

    asyncio.run(lifecycle.accept(second.match.id, env.admin))
    with pytest.raises(ConflictError):
        asyncio.run(lifecycle.remove(second.match.id, env.root))


def test_get_is_restricted_to_participants_and_admins(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    created = asyncio.run(lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0))

    for viewer in (env.alice, env.bob, env.admin, env.root):
        match, _ = asyncio.run(lifecycle.get(created.match.id, viewer))
        assert match.player1_display_name == "Alice"
        assert match.league_name == "Tuesday Ladder"

    with pytest.raises(AuthorizationError):
        asyncio.run(lifecycle.get(created.match.id, env.carol))


def test_list_filters_by_status_and_visibility(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        first = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, WIN_2_0)
        await lifecycle.submit(env.league.id, env.alice, env.carol_roster.id, WIN_2_0)
        await lifecycle.submit(env.league.id, env.bob, env.carol_roster.id, WIN_2_0)
        await lifecycle.accept(first.match.id, env.admin)
        return (
            await lifecycle.list_matches(env.alice),
            await lifecycle.list_matches(env.alice, status="pending"),
            await lifecycle.list_matches(env.admin, league_id=env.league.id, status="accepted"),
            await lifecycle.list_matches(env.outsider),
            await lifecycle.list_matches(env.root, limit=2, offset=0),
            await lifecycle.list_pending(env.admin),
            await lifecycle.list_pending(env.alice),
        )

    alice_all, alice_pending, accepted, outsider, root_page, admin_queue, alice_queue = asyncio.run(run())

    assert alice_all.total == 2
    assert alice_pending.total == 1
    assert [m.status for m in accepted.matches] == [MatchStatus.ACCEPTED_APPLIED]
    assert outsider.total == 0 and outsider.matches == []
    assert root_page.total == 3 and len(root_page.matches) == 2
    assert admin_queue.total == 2
    assert alice_queue.total == 0


def test_list_includes_each_matchs_sets(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)
    with_sets = MatchResult(
        player1_sets_won=2,
        player2_sets_won=1,
        match_format="best_of_3",
        sets=[
            {"player1_score": 11, "player2_score": 8},
            {"player1_score": 8, "player2_score": 11},
            {"player1_score": 11, "player2_score": 6},
        ],
    )

    async def run():
        scored = await lifecycle.submit(env.league.id, env.alice, env.bob_roster.id, with_sets)
        bare = await lifecycle.submit(env.league.id, env.alice, env.carol_roster.id, WIN_2_0)
        return scored.match.id, bare.match.id, await lifecycle.list_matches(env.alice)

    scored_id, bare_id, page = asyncio.run(run())

    assert set(page.sets) == {scored_id, bare_id}
    assert [(s.set_number, s.player2_score) for s in page.sets[scored_id]] == [(1, 8), (2, 11), (3, 6)]
    assert page.sets[bare_id] == []


def test_list_rejects_unknown_status(store, seeder) -> None:
    env = _league(seeder)

    with pytest.raises(ValidationError):
        asyncio.run(MatchLifecycle(store).list_matches(env.alice, status="archived"))


def test_preview_reads_current_ratings_without_writing(store, seeder) -> None:
    env = _league(seeder)
    lifecycle = MatchLifecycle(store)

    async def run():
        preview = await lifecycle.preview(env.league.id, env.alice, env.bob_roster.id, 2, 0, 22, 10)
        count = await store.get("SELECT COUNT(*) AS total FROM matches")
        return preview, count

    preview, count = asyncio.run(run())

    assert preview.player1.id == env.alice_roster.id
    assert (preview.delta.new_rating_a, preview.delta.new_rating_b) == (1217, 1183)
    assert count["total"] == 0

    with pytest.raises(NotAMemberError):
        asyncio.run(lifecycle.preview(env.league.id, env.outsider, env.bob_roster.id, 2, 0))

    explicit = asyncio.run(
        lifecycle.preview(
            env.league.id, env.root, env.carol_roster.id, 0, 2, player1_roster_id=env.bob_roster.id
        )
    )
    assert explicit.player1.id == env.bob_roster.id
    assert explicit.delta.delta < 0
