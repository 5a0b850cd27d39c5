"""Unit tests for the pure roster mutators (pod team, investors, attachments)."""

from __future__ import annotations

import pytest

from src.dealdesk.deals.errors import DealValidationError, RosterEntryNotFoundError
from src.dealdesk.deals.roster import (
    add_attachment,
    add_team_member,
    remove_attachment,
    remove_investor,
    remove_team_member,
    resolve_user_id,
    tag_investor,
    update_investor_status,
)
from src.dealdesk.deals.schemas import (
    Attachment,
    InvestorCreate,
    PodTeamMember,
    PodTeamMemberCreate,
)
from src.dealdesk.team.schemas import UserRead

DIRECTORY = [
    UserRead(id="u-1", name="Sam Ortiz", email="sam@example.com"),
    UserRead(id="u-2", name="Priya Shah", email="priya@example.com"),
]


# ── Pod Team ────────────────────────────────────────────────────────────────


class TestResolveUserId:
    def test_matches_email_case_insensitively(self) -> None:
        assert resolve_user_id("Someone Else", "SAM@Example.com", DIRECTORY) == "u-1"

    def test_matches_name_case_insensitively(self) -> None:
        assert resolve_user_id("priya shah", None, DIRECTORY) == "u-2"

    def test_email_wins_over_name(self) -> None:
        assert resolve_user_id("Sam Ortiz", "priya@example.com", DIRECTORY) == "u-2"

    def test_no_match(self) -> None:
        assert resolve_user_id("Outside Counsel", "oc@law.example", DIRECTORY) is None


class TestAddTeamMember:
    def test_appends_and_links_directory_user(self) -> None:
        team, added = add_team_member([], PodTeamMemberCreate(name="Sam Ortiz", role="Analyst"), DIRECTORY)
        assert team == [added]
        assert added.user_id == "u-1"

    def test_external_contact_gets_generated_id(self) -> None:
        _, first = add_team_member([], PodTeamMemberCreate(name="A", role="Analyst"), DIRECTORY)
        _, second = add_team_member([], PodTeamMemberCreate(name="A", role="Analyst"), DIRECTORY)
        assert first.user_id and second.user_id
        assert first.user_id != second.user_id

    def test_explicit_user_id_kept(self) -> None:
        _, added = add_team_member([], PodTeamMemberCreate(name="A", role="VP", user_id="u-9"), DIRECTORY)
        assert added.user_id == "u-9"

    @pytest.mark.parametrize("name,role", [("", "Analyst"), ("A", "  "), ("", "")])
    def test_requires_name_and_role(self, name: str, role: str) -> None:
        with pytest.raises(DealValidationError, match="required fields"):
            add_team_member([], PodTeamMemberCreate(name=name, role=role))

    def test_input_roster_not_mutated(self) -> None:
        roster = [PodTeamMember(name="B", role="VP")]
        add_team_member(roster, PodTeamMemberCreate(name="A", role="Analyst"))
        assert len(roster) == 1


class TestRemoveTeamMember:
    def test_round_trip_restores_roster(self) -> None:
        original = [PodTeamMember(name="B", role="VP")]
        team, _ = add_team_member(original, PodTeamMemberCreate(name="A", role="Analyst"))
        restored, removed = remove_team_member(team, 1)
        assert restored == original
        assert removed.name == "A"

    @pytest.mark.parametrize("index", [1, 5, -1])
    def test_out_of_range_raises(self, index: int) -> None:
        with pytest.raises(RosterEntryNotFoundError):
            remove_team_member([PodTeamMember(name="B", role="VP")], index)


# ── Investors ───────────────────────────────────────────────────────────────


class TestInvestors:
    def test_tag_synthesizes_id_and_defaults(self) -> None:
        roster, tagged = tag_investor([], InvestorCreate(name="Ana Lim", firm="Blue Peak"))
        assert roster == [tagged]
        assert tagged.id
        assert tagged.type == "PE"
        assert tagged.status == "Contacted"

    def test_tag_requires_name_and_firm(self) -> None:
        with pytest.raises(DealValidationError):
            tag_investor([], InvestorCreate(name="Ana Lim", firm=""))

    def test_update_status_replaces_only_target(self) -> None:
        roster, first = tag_investor([], InvestorCreate(name="Ana", firm="Blue Peak"))
        roster, second = tag_investor(roster, InvestorCreate(name="Ben", firm="Oakline"))

        updated_roster, updated, previous = update_investor_status(roster, first.id, "In DD")

        assert previous == "Contacted"
        assert updated.status == "In DD"
        assert [i.status for i in updated_roster] == ["In DD", "Contacted"]
        assert roster[0].status == "Contacted"

    def test_update_status_rejects_unknown_status(self) -> None:
        roster, tagged = tag_investor([], InvestorCreate(name="Ana", firm="Blue Peak"))
        with pytest.raises(DealValidationError):
            update_investor_status(roster, tagged.id, "Maybe")

    def test_update_status_missing_investor(self) -> None:
        with pytest.raises(RosterEntryNotFoundError):
            update_investor_status([], "nope", "Passed")

    def test_remove(self) -> None:
        roster, tagged = tag_investor([], InvestorCreate(name="Ana", firm="Blue Peak"))
        remaining, removed = remove_investor(roster, tagged.id)
        assert remaining == []
        assert removed.id == tagged.id

    def test_remove_missing_investor(self) -> None:
        with pytest.raises(RosterEntryNotFoundError):
            remove_investor([], "nope")


# ── Attachments ─────────────────────────────────────────────────────────────


class TestAttachments:
    def test_add_then_remove(self) -> None:
        attachment = Attachment(filename="cim.pdf", url="/uploads/x-cim.pdf", size=10)
        attachments = add_attachment([], attachment)
        remaining, removed = remove_attachment(attachments, attachment.id)
        assert remaining == []
        assert removed == attachment

    def test_remove_missing_attachment(self) -> None:
        with pytest.raises(RosterEntryNotFoundError):
            remove_attachment([], "nope")
