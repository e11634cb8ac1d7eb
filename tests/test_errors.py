from __future__ import annotations

from trackerops.errors import (
    ApplyError,
    FatalSetupError,
    FetchError,
    TrackerOpsError,
    classify_error,
    redact,
)
from trackerops.github_rest import GitHubAPIError


def test_classify_rate_limit():
    info = classify_error(RuntimeError('API Rate Limit Exceeded'))
    assert info.category == 'github.rate_limit'


def test_classify_abuse():
    info = classify_error(RuntimeError('Abuse detection triggered'))
    assert info.category == 'github.abuse'


def test_classify_auth_from_status():
    info = classify_error(GitHubAPIError('GET /user failed with 401', status=401))
    assert info.category == 'auth'
    assert info.details == {'status': 401}


def test_classify_network():
    info = classify_error(RuntimeError('Connection reset by peer'))
    assert info.category == 'network'


def test_classify_parse():
    info = classify_error(RuntimeError('YAML ScannerError near line 3'))
    assert info.category == 'parse'


def test_classify_generic():
    info = classify_error(ValueError('Some other problem'))
    assert info.category == 'generic'


def test_redact_tokens():
    sample = (
        "Token ghp_ABCDEFGHIJKLMNOPQRSTUVWX plus github_pat_1234567890abcdefghijkl "
        "and header Bearer abcdefgh12345678"
    )
    out = redact(sample)
    assert 'ghp_' not in out
    assert 'github_pat_' not in out
    assert 'abcdefgh12345678' not in out
    assert out.count('<redacted>') == 3


def test_redact_passes_empty_text():
    assert redact('') == ''


def test_taxonomy_shares_base_and_carries_context():
    fetch = FetchError('Failed to fetch page 2', page=2, status=502)
    apply = ApplyError('Update failed for #4', target=4)

    for exc in (fetch, apply, FatalSetupError('no token')):
        assert isinstance(exc, TrackerOpsError)
    assert (fetch.page, fetch.status) == (2, 502)
    assert apply.target == 4
