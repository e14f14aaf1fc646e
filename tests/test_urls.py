"""
Tests for canonical job URL normalization.
"""
import pytest

from app.core.urls import normalize_job_url


@pytest.mark.parametrize("raw,expected", [
    ("https://Jobs.Example.com/p/1", "https://jobs.example.com/p/1"),
    ("https://jobs.example.com:443/p/1/", "https://jobs.example.com/p/1"),
    ("http://jobs.example.com:80/p/1", "http://jobs.example.com/p/1"),
    ("http://jobs.example.com:8080/p/1", "http://jobs.example.com:8080/p/1"),
    ("https://jobs.example.com/p/1?utm_source=li&UTM_Campaign=x&gclid=1", "https://jobs.example.com/p/1"),
    ("https://jobs.example.com/p/1?id=9&ref=feed#apply", "https://jobs.example.com/p/1?id=9"),
    ("  https://jobs.example.com/p/1  ", "https://jobs.example.com/p/1"),
    ("jobs.example.com/p/1", "jobs.example.com/p/1"),
])
def test_normalize_job_url(raw, expected):
    assert normalize_job_url(raw) == expected


def test_path_case_is_preserved():
    assert normalize_job_url("https://example.com/Jobs/ABC") == "https://example.com/Jobs/ABC"
