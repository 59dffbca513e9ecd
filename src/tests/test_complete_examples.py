if __name__ == "__main__":
    import __init__  # noqa

import matplotlib

matplotlib.use("Agg")

from truss import (  # noqa: E402
    Structure,
    Joint,
    Member,
    Support,
    ProblemKind,
    SolutionState,
    DEFAULT_STRUCTURE,
    solve,
    solve_reaction_forces,
    plot_diagram,
    solve_and_plot,
    dump_structure_to_json,
    load_structure_from_json,
)
from utils_truss import Vector  # noqa: E402
import pytest  # noqa: E402

import json  # noqa: E402
import math  # noqa: E402


# utility - quick builds


def build_triangle() -> Structure:

    # A pinned, B on a roller, C loaded
    return Structure(
        joints=(
            Joint(1, "A", Vector(0, 0), support=Support(True, True)),
            Joint(2, "B", Vector(10, 0), support=Support(False, True)),
            Joint(3, "C", Vector(5, 5), load=Vector(0, -10)),
        ),
        members=(Member(4, (1, 2)), Member(5, (2, 3)), Member(6, (1, 3))),
    )


def build_bridge() -> Structure:

    joints = (
        (0, 0),
        (100, 0),
        (200, 0),
        (300, 0),
        (400, 0),
        (100, 100),
        (200, 100),
        (300, 100),
    )
    members = (
        "AB",
        "BC",
        "CD",
        "DE",
        "AF",
        "BF",
        "CF",
        "CG",
        "CH",
        "DH",
        "EH",
        "FG",
        "GH",
    )
    loads = [
        ("A", 0, -100),
        ("B", 0, -200),
        ("C", 0, -200),
        ("D", 0, -200),
        ("E", 0, -100),
    ]
    supports = (("A", "pin"), ("E", "roller"))

    return (
        Structure()
        .add_joints(joints)
        .add_members(members)
        .add_loads(loads)
        .add_supports(supports)
    )


def assert_in_equilibrium(structure: Structure, solution) -> None:

    # whole structure: loads and reactions balance, moments about the origin too
    total, moment = Vector(), 0.0
    for joint in structure.joints:
        force = joint.load + solution.reactions[joint.id]
        total += force
        moment += joint.position.cross(force)
    assert total.x == pytest.approx(0, abs=1e-6)
    assert total.y == pytest.approx(0, abs=1e-6)
    assert moment == pytest.approx(0, abs=1e-6)

    # each joint: member forces, load and reaction balance
    for joint in structure.joints:
        force = joint.load + solution.reactions[joint.id]
        for member in structure.get_all_members_connected_to_joint(joint):
            direction = structure.get_direction(member, joint)
            force += direction * solution.member_forces[member.id]
        assert force.x == pytest.approx(0, abs=1e-6)
        assert force.y == pytest.approx(0, abs=1e-6)


# test cases to check general functionality


def test_triangle():

    truss = build_triangle()
    solution = solve(truss)

    assert solution.state is SolutionState.SOLVED
    assert solution.is_solved
    assert solution.problems == ()

    # B is a roller, so its reaction is purely vertical
    assert solution.reactions[2].x == 0
    assert solution.reactions[2].y == pytest.approx(5)
    assert solution.reactions[1].x == pytest.approx(0)
    assert solution.reactions[1].y == pytest.approx(5)
    assert solution.reactions[3] == Vector(0, 0)

    assert solution.member_forces[4] == pytest.approx(5)
    assert solution.member_forces[5] == pytest.approx(-5 * math.sqrt(2))
    assert solution.member_forces[6] == pytest.approx(solution.member_forces[5])

    assert solution.member_state(4) == "tension"
    assert solution.member_state(5) == "compression"

    assert_in_equilibrium(truss, solution)


def test_default_structure():

    solution = solve(DEFAULT_STRUCTURE)

    assert solution.state is SolutionState.SOLVED
    assert list(solution.reactions[6]) == pytest.approx([0, 975])
    assert list(solution.reactions[8]) == pytest.approx([0, 775])
    assert set(solution.member_forces) == {m.id for m in DEFAULT_STRUCTURE.members}

    assert_in_equilibrium(DEFAULT_STRUCTURE, solution)


def test_bridge():

    truss = build_bridge()
    solution = solve(truss)
    a, e = truss.get_joint_by_name("A"), truss.get_joint_by_name("E")

    def force_in(name: str) -> float:
        for m in truss.members:
            if {truss.get_joint(i).name for i in m.joint_ids} == set(name):
                return solution.member_forces[m.id]

    assert solution.state is SolutionState.SOLVED
    assert list(solution.reactions[a.id]) == pytest.approx([0, 400])
    assert list(solution.reactions[e.id]) == pytest.approx([0, 400])

    assert force_in("AF") == pytest.approx(-300 * math.sqrt(2))
    assert force_in("AB") == pytest.approx(300)
    assert force_in("BF") == pytest.approx(200)
    assert force_in("AF") == pytest.approx(force_in("EH"))
    assert force_in("CF") == pytest.approx(force_in("CH"))

    assert_in_equilibrium(truss, solution)


def test_unloaded_members_are_zero():

    # with no loads at all, every force is exactly zero
    truss = Structure(
        build_triangle().joints[:2] + (Joint(3, "C", Vector(5, 5)),),
        build_triangle().members,
    )
    solution = solve(truss)

    assert solution.state is SolutionState.SOLVED
    assert all(v == 0 for v in solution.member_forces.values())
    assert all(v == Vector(0, 0) for v in solution.reactions.values())
    assert solution.member_state(4) == "unloaded"


def test_solve_is_repeatable():

    truss = build_bridge()
    first, second = solve(truss, trace=True), solve(truss, trace=True)

    assert first == second
    assert first.problems == second.problems
    assert first.member_forces == second.member_forces


def test_advisory_problems_do_not_block_solving():

    truss = build_triangle()
    renamed = Structure(
        truss.joints[:2] + (Joint(3, "A", Vector(5, 5), load=Vector(0, -10)),),
        truss.members,
    )
    solution = solve(renamed)

    assert solution.state is SolutionState.SOLVED
    assert [p.message for p in solution.problems] == [
        "Multiple joints exist with name A"
    ]
    assert solution.critical_problems == []


def test_no_members():

    truss = Structure().add_joints([(0, 0), (1, 0)]).add_supports([("A", "pin")])
    solution = solve(truss)

    assert solution.state is SolutionState.INVALID
    assert len(solution.problems) == 1
    assert solution.problems[0].critical
    assert solution.reactions is None
    assert solution.member_forces is None


def test_determinacy_boundary():

    assert solve(build_triangle()).state is SolutionState.SOLVED

    # take away the roller
    no_roller = build_triangle().add_supports([("B", "free")])
    solution = solve(no_roller)
    assert solution.state is SolutionState.INVALID
    assert [p.kind for p in solution.problems] == [ProblemKind.NOT_DETERMINATE]
    assert "J = 3, M = 3, R = 2" in solution.problems[0].message

    # take away a member
    solution = solve(build_triangle().without_member(5))
    assert solution.state is SolutionState.INVALID
    assert [p.kind for p in solution.problems] == [ProblemKind.NOT_DETERMINATE]


def test_singular_without_supports():

    truss = Structure().add_joints([(0, 0), (1, 0)]).add_members(["AB"])
    solution = solve(truss)

    assert solution.state is SolutionState.INVALID
    assert solution.problems[0].kind is ProblemKind.NOT_DETERMINATE
    assert "2J = 4 but M + R = 1" in solution.problems[0].message

    # even without the count check, there is nothing to solve for
    assert solve_reaction_forces(truss) is None


def test_reactions_unsolvable():

    # determinate by count, but four reaction components cannot come from
    # three equations of overall equilibrium
    truss = (
        Structure()
        .add_joints(
            [(0, 0), (290, -90), (815, 127.5), (290, 345), (0, 255), (220.836, 127.5)]
        )
        .add_members(["AB", "BC", "CD", "DE", "EF", "AF", "DF", "BF"])
        .add_loads([("C", 0, -0.675)])
        .add_supports([("A", "pin"), ("E", "pin")])
    )
    solution = solve(truss)

    assert solution.state is SolutionState.REACTIONS_UNSOLVABLE
    assert solution.problems[-1].kind is ProblemKind.REACTIONS_UNSOLVABLE
    assert solution.problems[-1].message == "Could not solve for outside reaction forces"
    assert solution.problems[-1].critical
    assert solution.reactions is None
    assert solution.member_forces is None


def test_determinate_but_internally_singular_truss():

    # the lower panel is braced twice, the upper panel not at all
    joints = ((0, 0), (100, 0), (0, 100), (100, 100), (0, 200), (100, 200))
    members = ("AB", "CD", "EF", "AC", "BD", "CE", "DF", "AD", "BC")
    loads = [("E", 100, 50)]
    supports = (("A", "pin"), ("B", "roller"))

    truss = (
        Structure()
        .add_joints(joints)
        .add_members(members)
        .add_loads(loads)
        .add_supports(supports)
    )
    solution = solve(truss)

    assert solution.state is SolutionState.MEMBERS_UNSOLVABLE
    assert solution.problems[-1].kind is ProblemKind.MEMBERS_UNSOLVABLE
    assert solution.problems[-1].message == "Could not solve for member forces"
    assert solution.member_forces is None

    # reactions are still reported
    a, b = truss.get_joint_by_name("A"), truss.get_joint_by_name("B")
    assert list(solution.reactions[a.id]) == pytest.approx([-100, -250])
    assert list(solution.reactions[b.id]) == pytest.approx([0, 200])


@pytest.mark.parametrize(
    "position, load",
    [
        (Vector(10, math.nan), Vector(0, 0)),
        (Vector(math.inf, 0), Vector(0, 0)),
        (Vector(10, 0), Vector(math.nan, 0)),
    ],
)
def test_non_finite_structure_is_unsolvable(position, load):

    a, b, c = build_triangle().joints
    truss = Structure(
        (a, Joint(2, "B", position, load, b.support), c), build_triangle().members
    )

    for trace in (False, True):
        solution = solve(truss, trace=trace)
        assert solution.state is SolutionState.REACTIONS_UNSOLVABLE
        assert solution.problems[-1].critical
        assert solution.member_forces is None


def test_tiny_loads_are_not_rounded_away():

    a, b, _ = build_triangle().joints
    load = -1e-10
    truss = Structure(
        (a, b, Joint(3, "C", Vector(5, 5), load=Vector(0, load))),
        build_triangle().members,
    )

    solution = solve(truss)

    assert solution.state is SolutionState.SOLVED
    assert solution.reactions[1].y == pytest.approx(-load / 2, rel=1e-6, abs=0)
    assert solution.reactions[2].y == pytest.approx(-load / 2, rel=1e-6, abs=0)
    assert solution.member_forces[4] == pytest.approx(-load / 2, rel=1e-6, abs=0)
    assert solution.member_forces[5] == pytest.approx(
        load / 2 * math.sqrt(2), rel=1e-6, abs=0
    )
    assert solution.member_state(4) == "tension"
    assert solution.member_state(5) == "compression"


def test_fix_degenerate_member_then_solve():

    triangle = build_triangle()
    truss = Structure(triangle.joints, triangle.members + (Member(7, (2, 2)),))
    solution = solve(truss)

    assert solution.state is SolutionState.INVALID
    (problem,) = solution.problems
    assert problem.kind is ProblemKind.DEGENERATE_MEMBER

    fixed = problem.apply_fix(truss)
    assert fixed == triangle
    assert solve(fixed).state is SolutionState.SOLVED


def test_trace():

    solution = solve(build_triangle(), trace=True, sig_figs=3)

    assert "Outside reaction forces:" in solution.trace
    assert "Member directions:" in solution.trace
    assert "A -> B [4]: (1.0, 0.0)" in solution.trace
    assert "C -> A [6]: (-0.707, -0.707)" in solution.trace
    assert "Member forces:" in solution.trace
    assert "unknowns = ['1_x', '1_y', '2_y']" in solution.trace

    assert solve(build_triangle()).trace == ""
    assert len(repr(solution)) > 0


def test_json_round_trip(tmp_path):

    truss = build_triangle()
    solution = solve(truss)

    path = dump_structure_to_json(
        truss, filedir=str(tmp_path / "out"), filename="triangle", solution=solution
    )
    assert path.endswith("triangle.json")

    assert load_structure_from_json(path) == truss

    with open(path) as f:
        results = json.load(f)["results"]
    assert results["state"] == "solved"
    assert results["memberForces"]["4"] == pytest.approx(5)
    assert results["reactions"]["2"] == pytest.approx({"x": 0, "y": 5})


def test_load_malformed_json(tmp_path):

    path = tmp_path / "bad.json"
    path.write_text('{"joints": [], "members": [{"id": 1, "jointIds": [2, 3]}]}')

    assert load_structure_from_json(str(path)) is None


def test_plot_diagram():

    truss = build_bridge()
    ax = plot_diagram(truss, solve(truss), show=False, sig_figs=3)
    assert len(ax.lines) >= len(truss.members) + len(truss.joints)

    # unsolved structures can still be drawn
    invalid = build_triangle().without_member(5)
    ax = plot_diagram(invalid, solve(invalid), show=False)
    assert len(ax.lines) > 0

    solution = solve_and_plot(build_triangle(), show=False, show_reactions=False)
    assert solution.is_solved
