"""
Tests for PointAttributeStore.
"""

import numpy as np
import pytest
from gsply import GSData

from gssel import PointAttributeStore, State, ValueResolver
from gssel.constants import SH_C0


@pytest.fixture
def sample_gsdata():
    """Generate sample GSData with degree-3 SH."""
    n = 500
    rng = np.random.default_rng(42)

    means = rng.standard_normal((n, 3)).astype(np.float32)
    quats = rng.standard_normal((n, 4)).astype(np.float32)
    quats = quats / np.linalg.norm(quats, axis=1, keepdims=True)
    scales = rng.normal(-3.0, 1.0, (n, 3)).astype(np.float32)
    opacities = rng.normal(0.0, 2.0, n).astype(np.float32)
    sh0 = rng.normal(0.0, 1.0, (n, 3)).astype(np.float32)
    shN = rng.random((n, 15, 3), dtype=np.float32)

    return GSData(
        means=means,
        quats=quats,
        scales=scales,
        opacities=opacities,
        sh0=sh0,
        shN=shN,
    )


class TestConstruction:
    """Test store construction and validation."""

    def test_basic(self):
        store = PointAttributeStore({"x": np.zeros(4), "y": np.ones(4)})
        assert len(store) == 4
        assert store.num_points == 4
        assert store.property_names() == ("x", "y", "state")
        assert store.state.dtype == np.uint8
        assert not store.state.any()

    def test_length_mismatch(self):
        with pytest.raises(ValueError, match="expected 4"):
            PointAttributeStore({"x": np.zeros(4), "y": np.zeros(5)})

    def test_state_length_mismatch(self):
        with pytest.raises(ValueError, match="state has 3"):
            PointAttributeStore({"x": np.zeros(4)}, state=np.zeros(3, dtype=np.uint8))

    def test_non_1d_property(self):
        with pytest.raises(ValueError, match="1D"):
            PointAttributeStore({"x": np.zeros((4, 2))})

    def test_properties_read_only(self):
        xs = np.arange(4, dtype=np.float32)
        store = PointAttributeStore({"x": xs})

        with pytest.raises(ValueError):
            store.get_property("x")[0] = 10.0
        # Caller's array is untouched
        assert xs.flags.writeable

    def test_state_is_shared(self):
        state = np.zeros(3, dtype=np.uint8)
        store = PointAttributeStore({"x": np.zeros(3)}, state=state)

        store.state[1] = State.SELECTED
        assert state[1] == State.SELECTED
        assert store.get_state_byte(1) == 1

    def test_state_from_properties(self):
        store = PointAttributeStore({"x": np.zeros(3), "state": np.array([0, 4, 0], dtype=np.uint8)})
        assert store.num_deleted == 1
        assert store.property_names() == ("x", "state")

    def test_state_cast_to_uint8(self):
        store = PointAttributeStore({"x": np.zeros(2)}, state=[1, 2])
        assert store.state.dtype == np.uint8

    def test_missing_property(self):
        store = PointAttributeStore({"x": np.zeros(2)})
        assert store.get_property("y") is None
        assert store.get_property("state") is store.state
        assert "x" in store
        assert "state" in store
        assert "y" not in store

    def test_repr(self):
        store = PointAttributeStore({"x": np.zeros(2)})
        assert repr(store) == "PointAttributeStore(2 points, 1 properties)"


class TestCounts:
    """Test per-state point counts."""

    def test_counts(self):
        state = np.array([0, 1, 1, 2, 3, 4, 5, 6], dtype=np.uint8)
        store = PointAttributeStore({"x": np.zeros(8)}, state=state)

        assert store.num_deleted == 3
        assert store.num_hidden == 2
        assert store.num_selected == 2


class TestFromGSData:
    """Test GSData column layout."""

    def test_positions(self, sample_gsdata):
        store = PointAttributeStore.from_gsdata(sample_gsdata)
        assert len(store) == 500
        for axis, name in enumerate(("x", "y", "z")):
            np.testing.assert_array_equal(store.get_property(name), sample_gsdata.means[:, axis])

    def test_raw_values_kept(self, sample_gsdata):
        store = PointAttributeStore.from_gsdata(sample_gsdata)
        np.testing.assert_array_equal(store.get_property("scale_1"), sample_gsdata.scales[:, 1])
        np.testing.assert_array_equal(store.get_property("opacity"), sample_gsdata.opacities)
        np.testing.assert_array_equal(store.get_property("f_dc_2"), sample_gsdata.sh0[:, 2])
        np.testing.assert_array_equal(store.get_property("rot_3"), sample_gsdata.quats[:, 3])

    def test_f_rest_is_channel_major(self, sample_gsdata):
        store = PointAttributeStore.from_gsdata(sample_gsdata)
        shN = sample_gsdata.shN

        np.testing.assert_array_equal(store.get_property("f_rest_0"), shN[:, 0, 0])
        np.testing.assert_array_equal(store.get_property("f_rest_14"), shN[:, 14, 0])
        np.testing.assert_array_equal(store.get_property("f_rest_15"), shN[:, 0, 1])
        np.testing.assert_array_equal(store.get_property("f_rest_44"), shN[:, 14, 2])
        assert store.get_property("f_rest_45") is None

    def test_no_higher_order_sh(self, sample_gsdata):
        data = GSData(
            means=sample_gsdata.means,
            quats=sample_gsdata.quats,
            scales=sample_gsdata.scales,
            opacities=sample_gsdata.opacities,
            sh0=sample_gsdata.sh0,
            shN=None,
        )
        store = PointAttributeStore.from_gsdata(data)
        assert not any(name.startswith("f_rest_") for name in store.property_names())

    def test_decoded_through_resolver(self, sample_gsdata):
        store = PointAttributeStore.from_gsdata(sample_gsdata)
        resolver = ValueResolver(store)

        np.testing.assert_allclose(
            resolver.resolve("scale_0").evaluate(),
            np.exp(sample_gsdata.scales[:, 0].astype(np.float64)),
            rtol=1e-12,
        )
        np.testing.assert_allclose(
            resolver.resolve("f_dc_0").evaluate(),
            0.5 + sample_gsdata.sh0[:, 0].astype(np.float64) * SH_C0,
            rtol=1e-12,
        )

    def test_available_keys_hide_f_rest(self, sample_gsdata):
        keys = ValueResolver(PointAttributeStore.from_gsdata(sample_gsdata)).available_keys()
        assert "rot_0" in keys
        assert "volume" in keys
        assert not any(k.startswith("f_rest_") for k in keys)

    def test_with_state(self, sample_gsdata):
        state = np.zeros(500, dtype=np.uint8)
        state[:10] = State.DELETED
        store = PointAttributeStore.from_gsdata(sample_gsdata, state=state)
        assert store.num_deleted == 10
        assert store.state is state
