"""
Tests for install length contributions.

These tests cover:
- Straight pipes and inline two-port fittings (split rule)
- Reducers (larger side wins)
- Elbows through the bend vertex
- Connectors measured by thickness
- Tee and cross run/branch decomposition, including fallbacks
"""

import itertools
import math

import pytest

from helpers import make_fitting, make_pipe, provider_with
from pipetakeoff.components import Component, Port
from pipetakeoff.contributions import InstallLengthCalculator, end_ports
from pipetakeoff.provider import InMemoryPropertyProvider


def as_tuples(contributions):
    """(tag, length, nd) tuples sorted by tag, lengths rounded."""
    return sorted(
        (c.line_tag, round(c.length_model_units, 6), c.target_nominal_diameter)
        for c in contributions
    )


# =============================================================================
# PIPES
# =============================================================================


class TestPipe:
    """Tests for straight pipe contributions."""

    def test_straight_segment_345(self):
        provider = provider_with(make_pipe("P-1", (0, 0, 0), (3, 4, 0), tag="L-1", nd=150.0))
        result = InstallLengthCalculator(provider).compute_contributions("P-1")
        assert as_tuples(result) == [("L-1", 5.0, 150.0)]

    def test_named_ports_preferred(self):
        """S1/S2 are used even when they are not the first two ports."""
        pipe = Component(
            "P-1",
            "Pipe",
            ports=[Port((50, 50, 50), "X"), Port((3, 4, 0), "S2"), Port((0, 0, 0), "S1")],
            properties={"LineNumberTag": "L-1"},
        )
        result = InstallLengthCalculator(provider_with(pipe)).compute_contributions("P-1")
        assert as_tuples(result) == [("L-1", 5.0, None)]

    def test_end_ports_fallback_to_first_two(self):
        ports = [Port((0, 0, 0)), Port((1, 0, 0)), Port((2, 0, 0))]
        assert end_ports(ports) == (ports[0], ports[1])
        assert end_ports(ports[:1]) is None

    def test_zero_length_pipe_emits_nothing(self):
        provider = provider_with(make_pipe("P-1", (1, 1, 1), (1, 1, 1)))
        assert InstallLengthCalculator(provider).compute_contributions("P-1") == []

    def test_single_port_pipe(self):
        pipe = Component("P-1", "Pipe", ports=[Port((0, 0, 0))])
        assert InstallLengthCalculator(provider_with(pipe)).compute_contributions("P-1") == []

    def test_support_has_no_length(self):
        support = make_fitting("S-1", "PipeSupport", [(0, 0, 0), (0, 0, 500)])
        assert InstallLengthCalculator(provider_with(support)).compute_contributions("S-1") == []

    def test_unknown_component_is_fail_soft(self):
        calc = InstallLengthCalculator(InMemoryPropertyProvider())
        assert calc.compute_contributions("missing") == []


# =============================================================================
# TWO-PORT RULE
# =============================================================================


def _valve_between(left_tag, right_tag, valve_tag="", left_nd=100.0, right_nd=80.0):
    """P-1 -- V-1 (10 units) -- P-2, either pipe omitted when its tag is None."""
    components = [make_fitting("V-1", "Valve", [(0, 0, 0), (10, 0, 0)], LineNumberTag=valve_tag, Size="65")]
    if left_tag is not None:
        components.append(make_pipe("P-1", (-100, 0, 0), (0, 0, 0), tag=left_tag, nd=left_nd))
    if right_tag is not None:
        components.append(make_pipe("P-2", (10, 0, 0), (110, 0, 0), tag=right_tag, nd=right_nd))
    provider = provider_with(*components)
    if left_tag is not None:
        provider.connect("P-1", "S2", "V-1", 0)
    if right_tag is not None:
        provider.connect("V-1", 1, "P-2", "S1")
    return InstallLengthCalculator(provider).compute_contributions("V-1")


class TestTwoPortRule:
    """Tests for inline fitting attribution."""

    def test_split_between_different_lines(self):
        """Distinct neighbor tags over 10 units give exactly 5 + 5."""
        result = _valve_between("L1", "L2")
        assert as_tuples(result) == [("L1", 5.0, 100.0), ("L2", 5.0, 80.0)]
        assert sum(c.length_model_units for c in result) == pytest.approx(10.0)

    def test_self_tag_takes_everything(self):
        result = _valve_between("L1", "L2", valve_tag="L9")
        assert as_tuples(result) == [("L9", 10.0, 100.0)]

    def test_same_tag_both_sides(self):
        assert as_tuples(_valve_between("L1", "L1")) == [("L1", 10.0, 100.0)]

    def test_only_right_side_resolves(self):
        """The diameter comes from the side that supplied the tag."""
        assert as_tuples(_valve_between(None, "L2")) == [("L2", 10.0, 80.0)]

    def test_nothing_resolves(self):
        """Unroutable length is kept under an empty tag with the own diameter."""
        assert as_tuples(_valve_between(None, None)) == [("", 10.0, 65.0)]

    def test_neighbor_without_diameter_uses_own(self):
        result = _valve_between("L1", None, left_nd=None)
        assert as_tuples(result) == [("L1", 10.0, 65.0)]


# =============================================================================
# REDUCER
# =============================================================================


class TestReducer:
    """Tests for reducer attribution."""

    @staticmethod
    def _calc(reversed_ports=False, big_nd=150.0, small_nd=100.0):
        ports = [Port((0, 0, 0), "S1"), Port((50, 0, 0), "S2")]
        if reversed_ports:
            ports.reverse()
        reducer = Component("R-1", "ConcentricReducer", ports=ports)
        provider = provider_with(
            reducer,
            make_pipe("P-A", (-100, 0, 0), (0, 0, 0), tag="LA", nd=big_nd),
            make_pipe("P-B", (50, 0, 0), (150, 0, 0), tag="LB", nd=small_nd),
        )
        provider.connect("P-A", "S2", "R-1", "S1")
        provider.connect("R-1", "S2", "P-B", "S1")
        return InstallLengthCalculator(provider)

    @pytest.mark.parametrize("reversed_ports", [False, True])
    def test_larger_side_regardless_of_port_order(self, reversed_ports):
        result = self._calc(reversed_ports).compute_contributions("R-1")
        assert as_tuples(result) == [("LA", 50.0, 150.0)]

    def test_larger_side_on_second_port(self):
        result = self._calc(big_nd=80.0, small_nd=200.0).compute_contributions("R-1")
        assert as_tuples(result) == [("LB", 50.0, 200.0)]

    def test_tie_goes_to_first_port(self):
        result = self._calc(big_nd=100.0, small_nd=100.0).compute_contributions("R-1")
        assert as_tuples(result) == [("LA", 50.0, 100.0)]

    def test_unknown_diameters_use_first_tag(self):
        reducer = make_fitting("R-1", "Reducer", [(0, 0, 0), (50, 0, 0)], LineNumberTag="LR", Size="150x100")
        other = make_pipe("P-B", (50, 0, 0), (150, 0, 0), tag="LB", nd=None)
        provider = provider_with(reducer, other)
        provider.connect("R-1", 1, "P-B", "S1")
        result = InstallLengthCalculator(provider).compute_contributions("R-1")
        assert as_tuples(result) == [("LB", 50.0, 150.0)]


# =============================================================================
# ELBOW AND CONNECTOR
# =============================================================================


class TestElbowAndConnector:
    """Tests for vertex paths and connector thickness."""

    def test_elbow_uses_vertex_path(self):
        elbow = make_fitting(
            "E-1", "Elbow", [(100, 0, 0), (0, 100, 0)],
            LineNumberTag="L-1", **{"Position X": 0, "Position Y": 0, "Position Z": 0},
        )
        result = InstallLengthCalculator(provider_with(elbow)).compute_contributions("E-1")
        assert as_tuples(result) == [("L-1", 200.0, None)]

    def test_elbow_without_vertex_uses_chord(self):
        elbow = make_fitting("E-1", "Elbow", [(100, 0, 0), (0, 100, 0)], LineNumberTag="L-1")
        result = InstallLengthCalculator(provider_with(elbow)).compute_contributions("E-1")
        assert result[0].length_model_units == pytest.approx(100 * math.sqrt(2))

    def test_connector_thickness(self):
        gasket = Component(
            "G-1", "Gasket", class_name="P3dConnector",
            ports=[Port((0, 0, 3), "S2"), Port((0, 0, 0), "S1")],
        )
        flange = make_fitting("F-1", "Flange", [(0, 0, -100), (0, 0, 0)], LineNumberTag="L-5", ND="80")
        provider = provider_with(gasket, flange)
        provider.connect("F-1", 1, "G-1", "S1")
        result = InstallLengthCalculator(provider).compute_contributions("G-1")
        assert as_tuples(result) == [("L-5", 3.0, 80.0)]

    def test_gasket_without_connector_class_is_not_measured(self):
        gasket = make_fitting("G-1", "Gasket", [(0, 0, 0), (0, 0, 3)], LineNumberTag="L-5")
        assert InstallLengthCalculator(provider_with(gasket)).compute_contributions("G-1") == []

    def test_custom_connector_class(self):
        gasket = make_fitting("G-1", "Gasket", [(0, 0, 0), (0, 0, 3)], class_name="Spacer", LineNumberTag="L-5")
        calc = InstallLengthCalculator(provider_with(gasket), connector_classes=["Spacer"])
        assert as_tuples(calc.compute_contributions("G-1")) == [("L-5", 3.0, None)]


# =============================================================================
# TEE / CROSS
# =============================================================================


TEE_PORTS = [(-100.0, 0.0, 0.0), (100.0, 0.0, 0.0), (0.0, 80.0, 0.0)]


def _tee_network(order=(0, 1, 2), tee_tag="", branch_type="Pipe", tee_size="150x50"):
    """
    Tee with run ports 0/1 on line MAIN (ND 150) and branch port 2 on BR
    (ND 50). order permutes the tee's port list.
    """
    positions = [TEE_PORTS[i] for i in order]
    tee = make_fitting("T-1", "Tee", positions, LineNumberTag=tee_tag, Size=tee_size)
    provider = provider_with(
        tee,
        make_pipe("P-L", (-500, 0, 0), TEE_PORTS[0], tag="MAIN", nd=150.0),
        make_pipe("P-R", TEE_PORTS[1], (500, 0, 0), tag="MAIN", nd=150.0),
    )
    if branch_type == "Pipe":
        provider.add(make_pipe("P-B", TEE_PORTS[2], (0, 500, 0), tag="BR", nd=50.0))
        provider.connect("T-1", Port(TEE_PORTS[2]), "P-B", "S1")
    else:
        provider.add(make_fitting("P-B", branch_type, [TEE_PORTS[2]], LineNumberTag="BR", NominalDiameter=600))
        provider.connect("T-1", Port(TEE_PORTS[2]), "P-B", 0)
    provider.connect("P-L", "S2", "T-1", Port(TEE_PORTS[0]))
    provider.connect("T-1", Port(TEE_PORTS[1]), "P-R", "S1")
    return InstallLengthCalculator(provider)


class TestTee:
    """Tests for tee decomposition."""

    def test_run_and_branch(self):
        result = _tee_network().compute_contributions("T-1")
        assert as_tuples(result) == [("BR", 80.0, 50.0), ("MAIN", 200.0, 150.0)]

    @pytest.mark.parametrize("order", list(itertools.permutations(range(3))))
    def test_run_selection_invariant_to_port_order(self, order):
        result = _tee_network(order).compute_contributions("T-1")
        assert as_tuples(result) == [("BR", 80.0, 50.0), ("MAIN", 200.0, 150.0)]

    def test_breakdown(self):
        b = _tee_network().breakdown("T-1")
        assert b.method == "geometric"
        assert not b.is_cross
        assert b.run_ports == (0, 1)
        assert b.run_length == pytest.approx(200.0)
        assert b.branch_ports == [2]
        assert b.branch_lengths == [pytest.approx(80.0)]
        assert b.branch_tags == ["BR"]
        assert b.port_diameters == [150.0, 50.0]

    def test_self_tag_takes_run(self):
        result = _tee_network(tee_tag="T-LINE").compute_contributions("T-1")
        assert as_tuples(result) == [("BR", 80.0, 50.0), ("T-LINE", 200.0, 150.0)]

    def test_size_fallback_without_neighbors(self):
        tee = make_fitting("T-1", "Tee", TEE_PORTS, Size="150x50")
        result = InstallLengthCalculator(provider_with(tee)).compute_contributions("T-1")
        assert as_tuples(result) == [("", 80.0, 50.0), ("", 200.0, 150.0)]

    def test_manhole_branch_has_no_length(self):
        calc = _tee_network(branch_type="Manhole")
        result = calc.compute_contributions("T-1")
        assert as_tuples(result) == [("MAIN", 200.0, 150.0)]

        b = calc.breakdown("T-1")
        assert b.manhole_branches == [True]
        assert b.branch_lengths == [0.0]
        assert b.branch_diameters == [600.0]

    def test_breakdown_of_non_branching_component(self):
        provider = provider_with(make_pipe("P-1", (0, 0, 0), (1, 0, 0)))
        assert InstallLengthCalculator(provider).breakdown("P-1") is None


class TestTeeFallback:
    """Tests for the fallback when no run pair can be found geometrically."""

    # Branch port sits on the centroid of the three ports
    DEGENERATE = [(0.0, 0.0, 0.0), (-100.0, 0.0, 0.0), (100.0, 0.0, 0.0)]

    def test_diameter_ordering(self):
        tee = make_fitting("T-1", "Tee", self.DEGENERATE)
        provider = provider_with(
            tee,
            make_pipe("P-B", (0, -300, 0), (0, 0, 0), tag="BR", nd=50.0),
            make_pipe("P-L", (-500, 0, 0), (-100, 0, 0), tag="MAIN", nd=150.0),
            make_pipe("P-R", (100, 0, 0), (500, 0, 0), tag="MAIN", nd=150.0),
        )
        provider.connect("P-B", "S2", "T-1", 0)
        provider.connect("P-L", "S2", "T-1", 1)
        provider.connect("T-1", 2, "P-R", "S1")

        b = InstallLengthCalculator(provider).breakdown("T-1")
        assert b.method == "diameter"
        assert b.run_ports == (1, 2)
        assert b.branch_ports == [0]

    def test_positional_without_diameters(self):
        tee = make_fitting("T-1", "Tee", self.DEGENERATE, LineNumberTag="L")
        b = InstallLengthCalculator(provider_with(tee)).breakdown("T-1")
        assert b.method == "positional"
        assert b.run_ports == (0, 1)
        assert b.branch_ports == [2]
        assert b.run_length == pytest.approx(100.0)
        # Port 2 lies beyond the run end, so it is measured to that end
        assert b.branch_lengths == [pytest.approx(100.0)]


class TestCross:
    """Tests for cross decomposition."""

    PORTS = [(-100.0, 0.0, 0.0), (100.0, 0.0, 0.0), (0.0, 60.0, 0.0), (0.0, -60.0, 0.0)]

    def _calc(self):
        cross = make_fitting("X-1", "Cross", self.PORTS)
        provider = provider_with(
            cross,
            make_pipe("P-L", (-500, 0, 0), self.PORTS[0], tag="MAIN", nd=150.0),
            make_pipe("P-R", self.PORTS[1], (500, 0, 0), tag="MAIN", nd=150.0),
            make_pipe("P-U", self.PORTS[2], (0, 500, 0), tag="B-SMALL", nd=50.0),
            make_pipe("P-D", self.PORTS[3], (0, -500, 0), tag="B-LARGE", nd=80.0),
        )
        provider.connect("P-L", "S2", "X-1", 0)
        provider.connect("X-1", 1, "P-R", "S1")
        provider.connect("X-1", 2, "P-U", "S1")
        provider.connect("X-1", 3, "P-D", "S1")
        return InstallLengthCalculator(provider)

    def test_branches_ordered_by_diameter(self):
        b = self._calc().breakdown("X-1")
        assert b.is_cross
        assert b.run_ports == (0, 1)
        assert b.branch_tags == ["B-LARGE", "B-SMALL"]
        assert b.branch_diameters == [80.0, 50.0]
        assert b.port_diameters == [150.0, 80.0, 50.0]

    def test_contributions(self):
        result = self._calc().compute_contributions("X-1")
        assert as_tuples(result) == [
            ("B-LARGE", 60.0, 80.0),
            ("B-SMALL", 60.0, 50.0),
            ("MAIN", 200.0, 150.0),
        ]

    def test_four_port_tee_is_treated_as_cross(self):
        tee = make_fitting("T-4", "Tee", self.PORTS, LineNumberTag="L")
        b = InstallLengthCalculator(provider_with(tee)).breakdown("T-4")
        assert b.is_cross
        assert len(b.branch_ports) == 2
