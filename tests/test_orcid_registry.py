"""Tests for researcher_sync.registries.orcid: name search and ORCID helpers."""
import unittest
from unittest.mock import MagicMock

import requests

from researcher_sync.exceptions import AmbiguousIdentityMatch, InsufficientNameParts, NoIdentityMatch
from researcher_sync.registries.orcid import (
    normalize_orcid,
    orcid_filter_value,
    resolve_candidate_for_name,
    search_candidates_by_name,
    valid_orcid,
)


def _response(payload=None, status_code: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.url = "https://pub.orcid.org/v3.0/search/"
    resp.text = "" if payload is None else str(payload)
    resp.json.return_value = payload
    return resp


def _session(*responses) -> MagicMock:
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


def _results(*paths: str) -> dict:
    return {"num-found": len(paths), "result": [{"orcid-identifier": {"path": p}} for p in paths]}


class SearchCandidatesTests(unittest.TestCase):
    def test_queries_family_and_given_name_together(self) -> None:
        session = _session(_response(_results("0000-0002-1825-0097")))
        out = search_candidates_by_name("Brian", "Keegan", session=session)

        self.assertEqual([c.orcid for c in out], ["0000-0002-1825-0097"])
        self.assertEqual(out[0].name, "Brian Keegan")
        args, kwargs = session.get.call_args
        self.assertEqual(args[0], "https://pub.orcid.org/v3.0/search/")
        self.assertEqual(kwargs["params"], {"q": "family-name:Keegan AND given-names:Brian"})
        self.assertEqual(kwargs["timeout"], 10)

    def test_empty_result_list(self) -> None:
        session = _session(_response({"num-found": 0, "result": None}))
        self.assertEqual(search_candidates_by_name("Brian", "Keegan", session=session), [])

    def test_http_error_is_soft(self) -> None:
        session = _session(_response({"error": "boom"}, status_code=500))
        self.assertEqual(search_candidates_by_name("Brian", "Keegan", session=session), [])

    def test_timeout_is_soft(self) -> None:
        session = MagicMock()
        session.get.side_effect = requests.Timeout("slow")
        self.assertEqual(search_candidates_by_name("Brian", "Keegan", session=session), [])

    def test_non_json_body_is_soft(self) -> None:
        resp = _response({})
        resp.json.side_effect = ValueError("not json")
        self.assertEqual(search_candidates_by_name("Brian", "Keegan", session=_session(resp)), [])


class ResolveCandidateTests(unittest.TestCase):
    def test_single_match_is_returned(self) -> None:
        session = _session(_response(_results("0000-0002-1825-0097")))
        candidate = resolve_candidate_for_name("Brian C. Keegan, Ph.D.", session=session)
        self.assertEqual(candidate.orcid, "0000-0002-1825-0097")

    def test_zero_matches_raise_no_match(self) -> None:
        session = _session(_response(_results()))
        with self.assertRaises(NoIdentityMatch) as ctx:
            resolve_candidate_for_name("Brian Keegan", session=session)
        self.assertEqual(ctx.exception.status, "no_match")

    def test_many_matches_raise_ambiguous(self) -> None:
        session = _session(_response(_results("0000-0002-1825-0097", "0000-0002-1694-233X")))
        with self.assertRaises(AmbiguousIdentityMatch) as ctx:
            resolve_candidate_for_name("Brian Keegan", session=session)
        self.assertEqual(ctx.exception.status, "multiple_matches")
        self.assertEqual(ctx.exception.match_count, 2)

    def test_unparseable_name_never_hits_the_registry(self) -> None:
        session = MagicMock()
        with self.assertRaises(InsufficientNameParts):
            resolve_candidate_for_name("Keegan", session=session)
        session.get.assert_not_called()


class OrcidHelperTests(unittest.TestCase):
    def test_checksum(self) -> None:
        self.assertTrue(valid_orcid("0000-0002-1825-0097"))
        self.assertTrue(valid_orcid("0000-0002-1694-233X"))
        self.assertFalse(valid_orcid("0000-0002-1825-0098"))
        self.assertFalse(valid_orcid(""))

    def test_normalize_accepts_url_compact_and_bare(self) -> None:
        for raw in (
            "0000-0002-1825-0097",
            "https://orcid.org/0000-0002-1825-0097",
            "orcid.org/0000-0002-1825-0097",
            "0000000218250097",
        ):
            self.assertEqual(normalize_orcid(raw), "0000-0002-1825-0097", raw)

    def test_normalize_rejects_bad_checksum(self) -> None:
        self.assertIsNone(normalize_orcid("0000-0002-1825-0098"))
        self.assertIsNone(normalize_orcid("not an orcid"))
        self.assertIsNone(normalize_orcid(None))

    def test_filter_value_strips_url_forms(self) -> None:
        self.assertEqual(orcid_filter_value("https://orcid.org/0000-0002-1694-233x"), "0000-0002-1694-233X")
        self.assertEqual(orcid_filter_value("http://www.orcid.org/0000-0002-1825-0097/"), "0000-0002-1825-0097")
        self.assertEqual(orcid_filter_value("0000000218250097"), "0000-0002-1825-0097")
        self.assertEqual(orcid_filter_value("0000-0002-1825-0097,display_name.search:x"), "0000-0002-1825-0097")

    def test_filter_value_passes_bad_checksum_through(self) -> None:
        self.assertEqual(orcid_filter_value("0000-0002-1825-0098"), "0000-0002-1825-0098")

    def test_filter_value_rejects_text_without_an_orcid(self) -> None:
        for raw in ("n/a", "", None, "0000-0002,display_name.search:x"):
            self.assertIsNone(orcid_filter_value(raw), raw)


if __name__ == "__main__":
    unittest.main()
