import pytest

from application.dto import ProfileUpsertDTO
from application.services.profile_service import ProfileApplicationService
from domain.common.exceptions import MessageValidationException, ProfileNotFoundException
from domain.profile.entity import Profile


def test_interests_are_normalized():
    profile = Profile(user_id="alice", location=" Paris ", interests=["Hiking", "hiking ", "", "Jazz"])
    assert profile.location == "Paris"
    assert profile.interests == ["hiking", "jazz"]


def test_match_requires_same_location_and_shared_interest():
    alice = Profile(user_id="alice", location="Paris", interests=["jazz", "hiking"])
    assert alice.matches(Profile(user_id="bob", location="paris", interests=["Jazz"]))
    assert not alice.matches(Profile(user_id="carol", location="Lyon", interests=["jazz"]))
    assert not alice.matches(Profile(user_id="dave", location="Paris", interests=["chess"]))
    assert not alice.matches(alice)


@pytest.mark.asyncio
async def test_upsert_then_get(uow_factory):
    service = ProfileApplicationService(uow_factory)
    await service.upsert_profile("alice", ProfileUpsertDTO(location="Paris", interests=["Jazz"]))
    updated = await service.upsert_profile(
        "alice", ProfileUpsertDTO(location="Lyon", interests=["chess"], display_name="Alice")
    )
    assert updated.location == "Lyon"

    fetched = await service.get_profile("alice")
    assert fetched.display_name == "Alice"
    assert fetched.interests == ["chess"]


@pytest.mark.asyncio
async def test_find_matches_orders_by_shared_interest_count(uow_factory):
    service = ProfileApplicationService(uow_factory)
    await service.upsert_profile("alice", ProfileUpsertDTO(location="Paris", interests=["jazz", "hiking", "wine"]))
    await service.upsert_profile("bob", ProfileUpsertDTO(location="PARIS", interests=["jazz"]))
    await service.upsert_profile("carol", ProfileUpsertDTO(location="Paris", interests=["jazz", "wine"]))
    await service.upsert_profile("dave", ProfileUpsertDTO(location="Lyon", interests=["jazz", "wine"]))
    await service.upsert_profile("erin", ProfileUpsertDTO(location="Paris", interests=["chess"]))

    matches = await service.find_matches("alice")

    assert [m.profile.user_id for m in matches] == ["carol", "bob"]
    assert matches[0].shared_interests == ["jazz", "wine"]


@pytest.mark.asyncio
async def test_missing_profile_raises(uow_factory):
    service = ProfileApplicationService(uow_factory)
    with pytest.raises(ProfileNotFoundException):
        await service.get_profile("ghost")
    with pytest.raises(ProfileNotFoundException):
        await service.find_matches("ghost")


@pytest.mark.parametrize("user_id", ["x" * 65, " alice", ""])
def test_profile_user_id_follows_identity_rules(user_id):
    with pytest.raises(MessageValidationException) as exc_info:
        Profile(user_id=user_id, location="Paris")
    assert exc_info.value.field == "user_id"
