from datetime import datetime, timezone

import pytest

from ticketwatch.engines.search.classifier import (
    PageSnapshot,
    SearchOutcome,
    SearchResult,
    TicketMessage,
    classify,
    parse_portal_timestamp,
    parse_ticket_card,
)

from fakes import accessible_page, captcha_page, card_html, message_page, no_results_page


def test_empty_page_is_no_results():
    assert classify(PageSnapshot(text=None), "cab001").result is SearchResult.NO_RESULTS
    assert classify(PageSnapshot(text="   \n"), "cab001").result is SearchResult.NO_RESULTS


def test_visible_challenge_outranks_no_results_text():
    snapshot = message_page(TicketMessage.NO_RESULTS, challenge_visible=True)
    assert classify(snapshot, "cab001").result is SearchResult.CAPTCHA


def test_visible_challenge_outranks_card():
    snapshot = accessible_page("cab001")
    snapshot.challenge_visible = True
    assert classify(snapshot, "cab001").result is SearchResult.CAPTCHA


def test_failed_challenge_kept_distinct():
    outcome = classify(message_page(TicketMessage.FAILED_CHALLENGE), "cab001")
    assert outcome.result is SearchResult.FAILED_CHALLENGE
    assert outcome.is_challenge


def test_failed_challenge_outranks_closed():
    snapshot = PageSnapshot(
        text=f"{TicketMessage.FAILED_CHALLENGE.value} {TicketMessage.CLOSED.value}"
    )
    assert classify(snapshot, "cab001").result is SearchResult.FAILED_CHALLENGE


@pytest.mark.parametrize("message", [TicketMessage.CLOSED, TicketMessage.REMITTANCE])
def test_closed_markers(message):
    assert classify(message_page(message), "cab001").result is SearchResult.CLOSED


def test_closed_outranks_no_results():
    snapshot = PageSnapshot(
        text=f"{TicketMessage.REMITTANCE.value} {TicketMessage.NO_RESULTS.value}"
    )
    assert classify(snapshot, "cab001").result is SearchResult.CLOSED


def test_no_results_marker():
    outcome = classify(no_results_page(), "cab001")
    assert outcome == SearchOutcome(SearchResult.NO_RESULTS)
    assert outcome.ticket is None


def test_captcha_page():
    assert classify(captcha_page(), "cab001").result is SearchResult.CAPTCHA


def test_accessible_card_is_parsed():
    outcome = classify(accessible_page("cab001"), "cab001")

    assert outcome.result is SearchResult.ACCESSIBLE
    ticket = outcome.ticket
    assert ticket.ticket_id == "cab001"
    assert ticket.license_plate_number == "KXM4821"
    assert ticket.license_plate_state == "NY"
    assert ticket.street_location == "100 W STATE ST"
    assert ticket.evidence_url == "https://evidence.test/photo.jpg"
    # 10:38 AM Eastern standard time
    assert ticket.timestamp == datetime(2025, 12, 15, 15, 38, tzinfo=timezone.utc)


def test_card_for_other_id_is_no_results():
    snapshot = accessible_page("cab002")
    assert classify(snapshot, "cab001").result is SearchResult.NO_RESULTS


def test_card_without_header_is_no_results():
    html = '<div class="card ticket-card" data-citationnumber="cab001"><span>nothing</span></div>'
    snapshot = PageSnapshot(text="Ticket Search", html=html)
    assert classify(snapshot, "cab001").result is SearchResult.NO_RESULTS


def test_card_missing_optional_fields():
    html = """
    <div class="card ticket-card" data-citationnumber="cab001">
      <div class="card-header"><button><span>a</span><span>b</span><span>01/02/2026 09:05 PM</span></button></div>
    </div>
    """
    ticket = parse_ticket_card(html, "cab001")

    assert ticket is not None
    assert ticket.license_plate_number is None
    assert ticket.license_plate_state is None
    assert ticket.street_location is None
    assert ticket.evidence_url is None
    assert ticket.timestamp == datetime(2026, 1, 3, 2, 5, tzinfo=timezone.utc)


def test_timestamp_is_third_direct_child_of_header():
    html = """
    <div class="card ticket-card" data-citationnumber="cab001">
      <div class="card-header"><button>
        <i class="icon"></i><span>Parking <span>Violation</span></span><span>01/02/2026 09:05 PM</span>
      </button></div>
    </div>
    """
    ticket = parse_ticket_card(html, "cab001")
    assert ticket.timestamp == datetime(2026, 1, 3, 2, 5, tzinfo=timezone.utc)


def test_unparseable_timestamp_falls_back_to_observation_time():
    observed = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    ticket = parse_ticket_card(card_html("cab001", timestamp="soon"), "cab001", observed_at=observed)
    assert ticket.timestamp == observed


def test_inline_evidence_image_is_kept_as_is():
    data_uri = "data:image/jpeg;base64,AAAA"
    ticket = parse_ticket_card(card_html("cab001", evidence=data_uri), "cab001")
    assert ticket.evidence_url == data_uri


def test_portal_timestamp_handles_daylight_saving():
    parsed = parse_portal_timestamp("07/04/2025 12:00 PM", "America/New_York")
    assert parsed == datetime(2025, 7, 4, 16, 0, tzinfo=timezone.utc)


def test_outcome_payload_only_for_accessible():
    with pytest.raises(ValueError):
        SearchOutcome(SearchResult.ACCESSIBLE)

    ticket = classify(accessible_page("cab001"), "cab001").ticket
    with pytest.raises(ValueError):
        SearchOutcome(SearchResult.CLOSED, ticket)
