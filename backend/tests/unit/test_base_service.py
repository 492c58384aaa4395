# backend/tests/unit/test_base_service.py
"""
Unit tests for BaseService transaction handling and operation metrics.
"""

from unittest.mock import Mock, patch

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorsched.core.exceptions import PersistenceException, ValidationException
from tutorsched.services.base import BaseService


class SampleService(BaseService):
    @BaseService.measure_operation("sample")
    def run(self, value):
        if value < 0:
            raise ValidationException("negative")
        return value * 2


class TestTransaction:
    def test_commits_on_success(self):
        mock_db = Mock(spec=Session)

        with BaseService(mock_db).transaction() as session:
            assert session is mock_db

        mock_db.commit.assert_called_once()
        mock_db.rollback.assert_not_called()

    def test_sqlalchemy_error_becomes_persistence_error(self):
        mock_db = Mock(spec=Session)

        with pytest.raises(PersistenceException):
            with BaseService(mock_db).transaction():
                raise SQLAlchemyError("connection lost")

        mock_db.rollback.assert_called_once()
        mock_db.commit.assert_not_called()

    def test_domain_errors_roll_back_and_propagate(self):
        mock_db = Mock(spec=Session)

        with pytest.raises(ValidationException):
            with BaseService(mock_db).transaction():
                raise ValidationException("bad rule")

        mock_db.rollback.assert_called_once()


class TestMeasureOperation:
    def test_logger_uses_class_name(self):
        assert SampleService(Mock(spec=Session)).logger.name == "SampleService"

    @patch("tutorsched.services.base.prometheus_metrics")
    def test_records_success(self, mock_metrics):
        assert SampleService(Mock(spec=Session)).run(4) == 8

        kwargs = mock_metrics.record_service_operation.call_args.kwargs
        assert kwargs["service"] == "SampleService"
        assert kwargs["operation"] == "sample"
        assert kwargs["status"] == "success"
        assert kwargs["error_type"] is None

    @patch("tutorsched.services.base.prometheus_metrics")
    def test_records_error_type(self, mock_metrics):
        with pytest.raises(ValidationException):
            SampleService(Mock(spec=Session)).run(-1)

        kwargs = mock_metrics.record_service_operation.call_args.kwargs
        assert kwargs["status"] == "error"
        assert kwargs["error_type"] == "ValidationException"

    def test_preserves_function_metadata(self):
        assert SampleService.run.__name__ == "run"
