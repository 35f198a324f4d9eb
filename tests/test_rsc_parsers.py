"""Tests for the flagship-web stream and HTML grammars."""

import pytest

from linkedin_cli.linkedin.utils.rsc_parsers import (
    extract_action_slot_profile_ids,
    extract_page_binding,
    is_html_payload,
    parse_connection_page,
    parse_connections_from_flagship_rsc,
    parse_connections_from_search_dash_clusters,
    parse_connections_from_search_html,
    parse_connections_from_search_stream,
)


def flagship_entry(username: str, name: str, headline: str) -> str:
    return (
        f'["$","a",null,{{"url":"https://www.linkedin.com/in/{username}/","className":"card"}}],'
        f'["$","p",null,{{"children":["{name}"]}}],'
        f'["$","p",null,{{"children":["{headline}"]}}],'
    )


def search_result(username: str, name: str, headline: str, profile_id: str, with_actions: bool = True) -> str:
    block = (
        '{"viewName":"people-search-result","content":['
        f'{{"url":"https://www.linkedin.com/in/{username}?miniProfileUrn=urn%3Ali%3Afsd_profile%3A{profile_id}"}},'
        f'{{"children":["{name}"]}},'
        '{"children":["• 2nd"]},'
        f'{{"children":["{headline}"]}},'
        '{"children":["Message"]},'
    )
    if with_actions:
        block += f'{{"primaryActionSlot":{{"profileUrn":"urn:li:fsd_profile:{profile_id}"}}}}'
    return block + "]}"


def decorative_result(username: str, profile_id: str) -> str:
    return (
        '{"viewName":"people-search-result","content":['
        f'{{"url":"https://www.linkedin.com/in/{username}"}},'
        '{"children":["Mutual Contact"]},'
        f'{{"entityUrn":"urn:li:fsd_profile:{profile_id}"}}]}}'
    )


def html_page(*mini_profiles: str) -> str:
    islands = "".join(
        f"<code>{{&quot;miniProfile&quot;:{{{fragment}}}}}</code>" for fragment in mini_profiles
    )
    return f"<!DOCTYPE html><html><body>{islands}</body></html>"


def mini(username: str, first: str, last: str, occupation: str, urn: str) -> str:
    return (
        f"&quot;publicIdentifier&quot;:&quot;{username}&quot;,"
        f"&quot;firstName&quot;:&quot;{first}&quot;,"
        f"&quot;lastName&quot;:&quot;{last}&quot;,"
        f"&quot;occupation&quot;:&quot;{occupation}&quot;,"
        f"&quot;entityUrn&quot;:&quot;{urn}&quot;"
    )


class TestPayloadKind:
    @pytest.mark.parametrize("payload,expected", [
        ("<!DOCTYPE html><html>", True),
        ("   \n<!doctype html>", True),
        ('0:["$","div"]', False),
        ("", False),
    ])
    def test_is_html_payload(self, payload, expected):
        assert is_html_payload(payload) is expected

    def test_page_binding(self):
        payload = 'x"currentIndicatorIndexBinding":{"key":"k","namespace":"MemoryNamespace","value":"SearchResultsauto-binding-3a"}'

        assert extract_page_binding(payload) == "SearchResultsauto-binding-3a"
        assert extract_page_binding('{"value":"SearchResultsauto-binding-1"}') is None


class TestFlagshipRsc:
    def test_url_name_headline(self):
        payload = flagship_entry("jane-doe", "Jane Q Doe", "Engineer at Acme") + flagship_entry(
            "bob", "Bob", "Designer"
        )

        connections = parse_connections_from_flagship_rsc(payload)

        assert [c.username for c in connections] == ["jane-doe", "bob"]
        assert connections[0].first_name == "Jane"
        assert connections[0].last_name == "Q Doe"
        assert connections[0].headline == "Engineer at Acme"
        assert connections[0].profile_url == "https://www.linkedin.com/in/jane-doe"
        assert connections[0].urn == ""
        assert connections[1].last_name == ""

    def test_duplicates_removed(self):
        payload = flagship_entry("jane-doe", "Jane Doe", "A") * 2

        assert len(parse_connections_from_flagship_rsc(payload)) == 1

    def test_no_match(self):
        assert parse_connections_from_flagship_rsc('{"children":["Jane"]}') == []


class TestSearchStream:
    def test_result_block(self):
        payload = search_result("ana-li", "Ana Li", "Data Scientist", "ACoAAAna")

        results = parse_connections_from_search_stream(payload)

        assert len(results) == 1
        result = results[0]
        assert result.username == "ana-li"
        assert result.first_name == "Ana"
        assert result.last_name == "Li"
        assert result.headline == "Data Scientist"
        assert result.connection_degree == "2nd"
        assert result.urn == "urn:li:fsd_profile:ACoAAAna"
        assert result.profile_url == "https://www.linkedin.com/in/ana-li"

    def test_decorative_people_without_actions_are_dropped(self):
        payload = search_result("decoy", "Decoy Person", "Mutual", "ACoDecoy", with_actions=False) + search_result(
            "real", "Real Person", "Engineer", "ACoReal"
        )

        results = parse_connections_from_search_stream(payload)

        assert [r.username for r in results] == ["real"]

    @pytest.mark.parametrize("real,decorative", [(3, 4), (5, 1), (1, 5)])
    def test_only_action_slot_results_survive(self, real, decorative):
        blocks = []
        for i in range(max(real, decorative)):
            if i < real:
                blocks.append(search_result(f"real-{i}", "Real Person", "Engineer", f"ACoReal{i}"))
            if i < decorative:
                blocks.append(decorative_result(f"decoy-{i}", f"ACoDecoy{i}"))

        results = parse_connections_from_search_stream("".join(blocks))

        assert [r.username for r in results] == [f"real-{i}" for i in range(real)]

    def test_enforcement_can_be_disabled(self):
        payload = search_result("decoy", "Decoy Person", "Mutual", "ACoDecoy", with_actions=False)

        assert parse_connections_from_search_stream(payload) == []
        assert [r.username for r in parse_connections_from_search_stream(payload, enforce_action_slots=False)] == [
            "decoy"
        ]

    def test_action_slot_allow_list(self):
        payload = '"secondaryActionSlot":{"x":"urn:li:fsd_profile:ACoOne"},"actionSlots":["profileId":"ACoTwo"]'

        assert extract_action_slot_profile_ids(payload) == {"ACoOne", "ACoTwo"}

    def test_block_without_profile_url_skipped(self):
        payload = '{"viewName":"people-search-result","children":["Nobody"]}'

        assert parse_connections_from_search_stream(payload, enforce_action_slots=False) == []


class TestSearchHtml:
    def test_mini_profiles_in_escaped_islands(self):
        payload = html_page(
            mini("sam-lee", "Sam", "Lee", "PM at Co", "urn:li:fs_miniProfile:ACoSam"),
            mini("sam-lee", "Sam", "Lee", "PM at Co", "urn:li:fs_miniProfile:ACoSam"),
            mini("kim", "Kim", "Park", "CEO", "urn:li:fs_miniProfile:ACoKim"),
        )

        results = parse_connections_from_search_html(payload)

        assert [r.username for r in results] == ["sam-lee", "kim"]
        assert results[0].urn == "urn:li:fs_miniProfile:ACoSam"
        assert results[0].headline == "PM at Co"
        assert results[1].profile_url == "https://www.linkedin.com/in/kim"


class TestSearchDashClusters:
    def test_fallback_field_orders(self):
        payload = {
            "included": [
                {
                    "publicIdentifier": "direct",
                    "firstName": "Dee",
                    "lastName": "Rect",
                    "occupation": "Engineer",
                    "entityUrn": "urn:li:fsd_profile:ACoD",
                    "connectionDistance": "DISTANCE_2",
                },
                {
                    "miniProfile": {"publicIdentifier": "via-mini", "firstName": "Vi", "entityUrn": "urn:li:fs_miniProfile:ACoV"},
                    "headline": {"text": "Designer"},
                },
                {
                    "navigationUrl": "https://www.linkedin.com/in/from-url?trk=x",
                    "subline": {"text": "Berlin"},
                    "distance": "DISTANCE_3",
                },
                {"publicIdentifier": "direct"},
                {"$type": "com.linkedin.voyager.dash.search.SearchCluster"},
                "junk",
            ]
        }

        results = parse_connections_from_search_dash_clusters(payload)

        assert [r.username for r in results] == ["direct", "via-mini", "from-url"]
        assert results[0].connection_degree == "DISTANCE_2"
        assert results[0].profile_url == "https://www.linkedin.com/in/direct"
        assert results[1].first_name == "Vi"
        assert results[1].urn == "urn:li:fs_miniProfile:ACoV"
        assert results[1].headline == "Designer"
        assert results[2].headline == "Berlin"
        assert results[2].connection_degree == "DISTANCE_3"

    @pytest.mark.parametrize("payload", [None, [], {"included": "nope"}, {}])
    def test_unusable_payloads(self, payload):
        assert parse_connections_from_search_dash_clusters(payload) == []


class TestParseConnectionPage:
    def test_connections_order_uses_flagship_first(self):
        payload = flagship_entry("jane-doe", "Jane Doe", "Engineer")

        assert [c.username for c in parse_connection_page(payload)] == ["jane-doe"]

    def test_html_goes_to_search_html(self):
        payload = html_page(mini("kim", "Kim", "Park", "CEO", "urn:li:fs_miniProfile:ACoKim"))

        assert [c.username for c in parse_connection_page(payload)] == ["kim"]
        assert [c.username for c in parse_connection_page(payload, prefer_search_parser=True)] == ["kim"]

    def test_search_order_relaxes_action_slots(self):
        payload = search_result("decoy", "Decoy Person", "Mutual", "ACoDecoy", with_actions=False)

        results = parse_connection_page(payload, prefer_search_parser=True)

        assert [r.username for r in results] == ["decoy"]

    def test_search_order_falls_back_to_flagship(self):
        payload = flagship_entry("jane-doe", "Jane Doe", "Engineer")

        assert [c.username for c in parse_connection_page(payload, prefer_search_parser=True)] == ["jane-doe"]

    def test_nothing_parseable(self):
        assert parse_connection_page('0:{"empty":true}') == []
        assert parse_connection_page('0:{"empty":true}', prefer_search_parser=True) == []
