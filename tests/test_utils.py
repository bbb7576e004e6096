"""Tests for bearer-token parsing and month-window arguments."""

import pytest
from flask import g

from clinpath_app_pkg.utils import get_current_user_from_token, parse_month_window_args


class TestCurrentUser:

    def test_reads_subject_and_permissions(self, app, auth_headers):
        with app.test_request_context(headers=auth_headers(['dashboard:read'])):
            assert get_current_user_from_token() == 'nurse-01'
            assert g.token_permissions == ['dashboard:read']
            assert not hasattr(g, 'current_token_jti')

    def test_missing_token(self, app):
        with app.test_request_context():
            assert get_current_user_from_token() is None
            assert g.authentication_error == "Token is missing!"


class TestMonthWindowArgs:

    def test_absent_values_default_to_today(self, app):
        window = parse_month_window_args({})
        assert 1 <= window.month <= 12

    def test_string_values_are_parsed(self):
        window = parse_month_window_args({'month': '3', 'year': '2024'})
        assert (window.month, window.year) == (3, 2024)

    @pytest.mark.parametrize("args", [
        {'month': 0, 'year': 2024},
        {'month': '0', 'year': 2024},
        {'month': 3, 'year': 0},
        {'month': 'maret', 'year': 2024},
    ])
    def test_rejects_out_of_range_or_non_numeric(self, args):
        with pytest.raises(ValueError):
            parse_month_window_args(args)
