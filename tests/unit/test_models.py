"""Unit tests for the pickled model registry."""

import pickle

import pytest

from hlacovid.models import get_hla_model, load_model_registry
from hlacovid.pipeline_core.error_handling import FileFormatError
from tests.mocks import FakeHLAModel


@pytest.mark.unit
class TestModelRegistry:
    def test_load_registry(self, tmp_path):
        path = tmp_path / "models.pkl"
        with open(path, "wb") as fh:
            pickle.dump({"A": FakeHLAModel(), "DRB1": FakeHLAModel(["DRB1*15:01"])}, fh)

        registry = load_model_registry(path)
        assert sorted(registry) == ["A", "DRB1"]
        assert isinstance(get_hla_model("DRB1", registry), FakeHLAModel)
        with pytest.raises(TypeError):
            registry["B"] = FakeHLAModel()

    def test_get_missing_model(self):
        assert get_hla_model("C", {"A": object()}) is None
        assert get_hla_model("C", {}) is None
        assert get_hla_model("C", None) is None

    def test_non_mapping_raises(self, tmp_path):
        path = tmp_path / "models.pkl"
        with open(path, "wb") as fh:
            pickle.dump(["A", "B"], fh)
        with pytest.raises(FileFormatError, match="mapping"):
            load_model_registry(path)

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "models.pkl"
        path.write_bytes(b"not a pickle")
        with pytest.raises(FileFormatError):
            load_model_registry(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_model_registry(tmp_path / "absent.pkl")
