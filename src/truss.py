"""
Truss Statics Solver

Tests:      tests/test_truss.py, tests/test_complete_examples.py

Checks whether a pin-jointed, straight-membered, plane truss can be
solved by statics alone, then finds the outside reaction forces at its
supports and the axial force in each member by the method of joints.
"""

# builtin modules
from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Callable, Optional
import logging
import math
import json
import re
import os

# local imports
import utils_truss
from utils_truss import Vector, Equation

# external modules
from matplotlib import pyplot as plt  # $ pip install matplotlib
import numpy as np  # $ pip install numpy


logger = logging.getLogger(__name__)


# axes along which a reaction force is supplied, for each kind of support
SUPPORT_TYPES = {
    "pin": (True, True),
    "roller": (False, True),
    "side roller": (True, False),
    "free": (False, False),
}


class BadStructureError(Exception):
    pass


# PARTS OF THE TRUSS


@dataclass(frozen=True)
class Support:

    """
    Which components of an outside reaction force a joint can receive.
    """

    x: bool = False
    y: bool = False

    def count(self) -> int:
        return int(self.x) + int(self.y)


@dataclass(frozen=True)
class Joint:

    """
    Joints define the locations where members meet.
    Each joint can have a load and a support applied.
    """

    id: int
    name: str
    position: Vector
    load: Vector = Vector()
    support: Support = Support()


@dataclass(frozen=True)
class Member:

    """
    Members are two-force elements going between two joints, given by id.
    The order of the two joints has no meaning.
    """

    id: int
    joint_ids: tuple[int, int]


# MAIN CLASS FOR STRUCTURES


@dataclass(frozen=True)
class Structure:

    """
    An immutable snapshot of a truss. Every edit returns a new structure.

    Raises `BadStructureError` if any ids repeat (joint ids and member ids share one
    namespace) or a member refers to a joint which does not exist. A member joining a
    joint to itself is allowed here, and reported by `find_problems`.
    """

    joints: tuple[Joint, ...] = ()
    members: tuple[Member, ...] = ()

    def __post_init__(self):

        object.__setattr__(self, "joints", tuple(self.joints))
        object.__setattr__(
            self,
            "members",
            tuple(replace(m, joint_ids=tuple(m.joint_ids)) for m in self.members),
        )

        joint_ids = set()
        for joint in self.joints:
            if joint.id in joint_ids:
                raise BadStructureError(f"Joint id {joint.id} is used more than once.")
            joint_ids.add(joint.id)

        member_ids = set()
        for member in self.members:
            if member.id in member_ids or member.id in joint_ids:
                raise BadStructureError(
                    f"Member id {member.id} is already used by another joint or member."
                )
            member_ids.add(member.id)
            if len(member.joint_ids) != 2:
                raise BadStructureError(
                    f"Member {member.id} must connect exactly two joints."
                )
            for joint_id in member.joint_ids:
                if joint_id not in joint_ids:
                    raise BadStructureError(
                        f"Member {member.id} refers to joint {joint_id}, which does not exist."
                    )

    # object builders

    def next_id(self) -> int:
        ids = [j.id for j in self.joints] + [m.id for m in self.members]
        return max(ids, default=0) + 1

    def add_joints(self, list_of_joints: list[dict | tuple]) -> "Structure":

        """
        Returns a new structure with one or more joints added.

        #### Arguments

        `list_of_joints` (list[dict | tuple]): a description of the joints
        to add, as one of the following:
        1) a list of dicts of the form {"name": str, "x": float, "y": float}, or
        2) a list of 3-tuples of the form (str, float, float) representing (name, x, y), or
        3) a list of 2-tuples of the form (float, float) representing (x, y).

        #### Notes

        If input type 3) is chosen, names are generated automatically as
        'A', 'B', 'C', ..., 'Z', 'AA', 'AB', ... continuing on from the number of joints
        already in the structure. Ids are always allocated automatically.

        #### Raises

        `ValueError`: if a mixture of input types is given, or if the type is not one the above.
        """

        _bad_val_msg = (
            "The input `list_of_joints` must be one of the following: \n"
            '1) a list of dicts of the form {"name": str, "x": float, "y": float}, or \n'
            "2) a list of 3-tuples of the form (str, float, float) representing (name, x, y), or \n"
            "3) a list of 2-tuples of the form (float, float) representing (x, y)."
        )

        try:
            _data_types = set([type(d) for d in list_of_joints])
            _lengths = set([len(d) for d in list_of_joints])
        except TypeError:
            raise ValueError(_bad_val_msg)

        if not _data_types:
            return self

        if len(_data_types) != 1 or len(_lengths) != 1:
            raise ValueError(
                "All entries in `list_of_joints` must have the same type and length. "
                f"Got a mixture: {_data_types}, {_lengths}."
            )

        (_data_type,) = _data_types
        (_length,) = _lengths

        if _data_type is dict:
            # Input type 1): expect input of the form {'name': ..., 'x': ..., 'y': ...}
            infos = [(item["name"], item["x"], item["y"]) for item in list_of_joints]
        elif _data_type is tuple and _length == 3:
            # Input type 2): expect input of the form (name, x, y)
            infos = list(list_of_joints)
        elif _data_type is tuple and _length == 2:
            # Input type 3): expect input of the form (x, y) - auto generate names
            names = utils_truss.iter_all_strings(start=len(self.joints))
            infos = [(name, *info) for name, info in zip(names, list_of_joints)]
        else:
            raise ValueError(_bad_val_msg)

        new_id = self.next_id()
        new_joints = [
            Joint(new_id + i, name, Vector(float(x), float(y)))
            for i, (name, x, y) in enumerate(infos)
        ]

        return replace(self, joints=self.joints + tuple(new_joints))

    def add_members(self, list_of_members: list[tuple | str]) -> "Structure":

        """
        Returns a new structure with one or more members added.

        #### Arguments

        `list_of_members` (list[tuple | str]): the joints each member connects, as either
        1) a list of 2-tuples of joint names (str, str), or
        2) a list of 2-character strings, each character being a joint name.

        #### Raises

        `ValueError`: if a lazily named member is not two letters long.
        `KeyError`: if no joint has one of the names given.
        """

        new_id = self.next_id()
        new_members = []

        for i, info in enumerate(list_of_members):
            if isinstance(info, str):
                if len(info) != 2:
                    raise ValueError(
                        "Lazily evaluated member names must be 2 letters long."
                    )
                info = (info[0], info[1])
            elif not (isinstance(info, tuple) and len(info) == 2):
                raise ValueError(
                    "The input `list_of_members` must be a list of 2-tuples of joint names "
                    "or 2-letter strings."
                )
            first, second = (self.get_joint_by_name(name) for name in info)
            if first is None or second is None:
                raise KeyError(f"No joint exists with a name in {info}.")
            new_members.append(Member(new_id + i, (first.id, second.id)))

        return replace(self, members=self.members + tuple(new_members))

    def add_loads(self, list_of_loads: list[tuple]) -> "Structure":

        """
        Returns a new structure with loads of the form (joint_name, x, y) added onto
        the loads already applied at those joints.
        """

        joints = list(self.joints)
        for joint_name, x, y in list_of_loads:
            i = self._index_of_joint_named(joint_name)
            load = joints[i].load + Vector(float(x), float(y))
            joints[i] = replace(joints[i], load=load)

        return replace(self, joints=tuple(joints))

    def add_supports(self, list_of_supports: list[tuple]) -> "Structure":

        """
        Returns a new structure with supports of the form (joint_name, support_type)
        placed, replacing any support already at those joints.

        support_type:   one of 'pin', 'roller' (vertical reaction), 'side roller'
                        (horizontal reaction) or 'free'
        """

        joints = list(self.joints)
        for joint_name, support_type in list_of_supports:
            if support_type not in SUPPORT_TYPES:
                raise ValueError(
                    f"Support type must be one of {', '.join(SUPPORT_TYPES)}. "
                    f"Got {support_type!r}."
                )
            i = self._index_of_joint_named(joint_name)
            support = Support(*SUPPORT_TYPES[support_type])
            joints[i] = replace(joints[i], support=support)

        return replace(self, joints=tuple(joints))

    def _index_of_joint_named(self, name: str) -> int:
        for i, joint in enumerate(self.joints):
            if joint.name == name:
                return i
        raise KeyError(f"No joint exists with the name {name}.")

    def without_member(self, member_id: int) -> "Structure":
        return replace(
            self, members=tuple(m for m in self.members if m.id != member_id)
        )

    # object and name getters

    def get_joint(self, joint_id: int) -> Optional[Joint]:
        return next((j for j in self.joints if j.id == joint_id), None)

    def get_joint_by_name(self, name: str) -> Optional[Joint]:
        return next((j for j in self.joints if j.name == name), None)

    def get_member(self, member_id: int) -> Optional[Member]:
        return next((m for m in self.members if m.id == member_id), None)

    def get_all_members_connected_to_joint(self, joint: Joint) -> list[Member]:
        return [m for m in self.members if joint.id in m.joint_ids]

    def get_other_joint(self, member: Member, joint: Joint) -> Joint:

        """
        Returns the joint at the far end of `member`, as seen from `joint`.
        """

        first_id, second_id = member.joint_ids
        return self.get_joint(second_id if first_id == joint.id else first_id)

    def get_direction(self, member: Member, origin_joint: Joint) -> Vector:

        """
        The unit vector pointing along `member` away from `origin_joint`.
        A tensile force in the member pulls the joint in this direction.
        """

        other_joint = self.get_other_joint(member, origin_joint)
        return (other_joint.position - origin_joint.position).with_length(1)


# PROBLEMS AND THEIR FIXES


@unique
class ProblemKind(Enum):

    NO_MEMBERS = "no members"
    MISSING_NAME = "missing name"
    DUPLICATE_NAME = "duplicate name"
    OVERLAPPING_JOINTS = "overlapping joints"
    DEGENERATE_MEMBER = "degenerate member"
    DUPLICATE_MEMBER = "duplicate member"
    NOT_DETERMINATE = "not statically determinate"
    REACTIONS_UNSOLVABLE = "reactions unsolvable"
    MEMBERS_UNSOLVABLE = "members unsolvable"


@dataclass(frozen=True)
class RemoveMember:

    """
    A fix which deletes one member. Calling it returns the corrected structure
    and leaves the given one untouched.
    """

    member_id: int

    def __call__(self, structure: Structure) -> Structure:
        return structure.without_member(self.member_id)


@dataclass(frozen=True)
class Problem:

    message: str
    critical: bool
    kind: ProblemKind
    fix: Optional[Callable[[Structure], Structure]] = None

    def apply_fix(self, structure: Structure) -> Structure:
        return structure if self.fix is None else self.fix(structure)


def determinacy_type(structure: Structure) -> str:

    """
    Compares unknowns against equations: each joint gives two equations, each member
    and each supported axis gives one unknown. Meeting this count does not guarantee
    the truss can be solved, since parts of it may still be mechanisms.
    """

    j = len(structure.joints)
    m = len(structure.members)
    r = sum(joint.support.count() for joint in structure.joints)

    if m + r > 2 * j:
        return "overconstrained"
    elif m + r < 2 * j:
        return "underconstrained"
    else:
        return "determinate"


def find_problems(structure: Structure) -> list[Problem]:

    """
    Checks the structure makes sense before trying to solve it. Problems are returned
    in the order they are found; the static determinacy count is only checked when
    everything else is fine.
    """

    if len(structure.members) == 0:
        return [
            Problem("No structural members exist", True, ProblemKind.NO_MEMBERS)
        ]

    problems = []

    seen_names = set()
    for joint in structure.joints:
        if joint.name.strip() == "":
            problems.append(
                Problem("Joint name missing", False, ProblemKind.MISSING_NAME)
            )
        elif joint.name in seen_names:
            problems.append(
                Problem(
                    f"Multiple joints exist with name {joint.name}",
                    False,
                    ProblemKind.DUPLICATE_NAME,
                )
            )
        else:
            seen_names.add(joint.name)

    # positions are compared exactly, so nearly-coincident joints are not flagged
    seen_positions = {}
    for joint in structure.joints:
        key = (joint.position.x, joint.position.y)
        if key in seen_positions:
            problems.append(
                Problem(
                    f"Joints {seen_positions[key].name} and {joint.name} overlap",
                    True,
                    ProblemKind.OVERLAPPING_JOINTS,
                )
            )
        else:
            seen_positions[key] = joint

    for member in structure.members:
        first_id, second_id = member.joint_ids
        if first_id == second_id:
            problems.append(
                Problem(
                    f"Invalid member exists on joint {structure.get_joint(first_id).name}",
                    True,
                    ProblemKind.DEGENERATE_MEMBER,
                    RemoveMember(member.id),
                )
            )

    seen_members = set()
    for member in structure.members:
        key = tuple(sorted(member.joint_ids))
        if key in seen_members:
            first, second = (structure.get_joint(i) for i in member.joint_ids)
            problems.append(
                Problem(
                    f"Duplicate members exist between joints {first.name} and {second.name}",
                    True,
                    ProblemKind.DUPLICATE_MEMBER,
                    RemoveMember(member.id),
                )
            )
        else:
            seen_members.add(key)

    if problems:
        return problems

    if (kind := determinacy_type(structure)) != "determinate":
        j = len(structure.joints)
        m = len(structure.members)
        r = sum(joint.support.count() for joint in structure.joints)
        problems.append(
            Problem(
                f"Structure is not statically determinate ({kind}). "
                f"J = {j}, M = {m}, R = {r} therefore 2J = {2 * j} but M + R = {m + r}.",
                True,
                ProblemKind.NOT_DETERMINATE,
            )
        )

    return problems


# FORCE SOLVERS


def reaction_variable(joint: Joint, axis: str) -> str:
    return f"{joint.id}_{axis}"


def largest_load(structure: Structure) -> float:
    """The largest load component on the structure, the scale of the results."""
    return max(
        (abs(c) for joint in structure.joints for c in joint.load), default=0.0
    )


def build_reaction_equations(structure: Structure) -> list[Equation]:

    """
    The three equations for equilibrium of the whole structure: moments about the
    origin, then forces in x and in y. The unknowns are the reaction components at
    each supported axis of each joint.
    """

    moment_terms, x_terms, y_terms = {}, {}, {}
    for joint in structure.joints:
        if joint.support.x:
            moment_terms[reaction_variable(joint, "x")] = joint.position.cross(
                utils_truss.X_AXIS
            )
            x_terms[reaction_variable(joint, "x")] = 1.0
        if joint.support.y:
            moment_terms[reaction_variable(joint, "y")] = joint.position.cross(
                utils_truss.Y_AXIS
            )
            y_terms[reaction_variable(joint, "y")] = 1.0

    return [
        Equation(
            moment_terms,
            sum(joint.position.cross(joint.load) for joint in structure.joints),
        ),
        Equation(x_terms, sum(joint.load.x for joint in structure.joints)),
        Equation(y_terms, sum(joint.load.y for joint in structure.joints)),
    ]


def solve_reaction_forces(structure: Structure) -> Optional[dict[int, Vector]]:

    """
    Finds the outside reaction force at every joint, as a vector. Joints without
    supports get a zero vector. Returns None if there is no unique answer.
    """

    solution = utils_truss.solve_linear_equations(build_reaction_equations(structure))
    if solution is None:
        return None

    scale = largest_load(structure)
    reactions = {joint.id: utils_truss.ZERO_VECTOR for joint in structure.joints}
    for var_name, value in solution.items():
        joint_id, axis = var_name.rsplit("_", 1)
        joint_id = int(joint_id)
        value = utils_truss.zero_if_small(value, scale)
        if axis == "x":
            reactions[joint_id] = replace(reactions[joint_id], x=value)
        else:
            reactions[joint_id] = replace(reactions[joint_id], y=value)

    return reactions


def build_member_equations(
    structure: Structure, reactions: dict[int, Vector]
) -> list[Equation]:

    """
    Resolves forces at every joint in x then y (method of joints). The unknowns are the
    member tensions, each acting on the joint along the member away from it.
    """

    equations = []
    for joint in structure.joints:
        reaction = reactions.get(joint.id, utils_truss.ZERO_VECTOR)
        directions = {
            str(member.id): structure.get_direction(member, joint)
            for member in structure.get_all_members_connected_to_joint(joint)
        }
        equations.append(
            Equation(
                {name: d.x for name, d in directions.items()},
                joint.load.x + reaction.x,
            )
        )
        equations.append(
            Equation(
                {name: d.y for name, d in directions.items()},
                joint.load.y + reaction.y,
            )
        )

    return equations


def solve_member_forces(
    structure: Structure, reactions: dict[int, Vector]
) -> Optional[dict[int, float]]:

    """
    Finds the axial force in every member (positive = tension; negative = compression),
    given the reactions already found. Returns None if there is no unique answer.
    """

    solution = utils_truss.solve_linear_equations(
        build_member_equations(structure, reactions), overdetermined=True
    )
    if solution is None:
        return None

    scale = largest_load(structure)
    return {
        int(var_name): utils_truss.zero_if_small(value, scale)
        for var_name, value in solution.items()
    }


# TRUSS RESULTS


@unique
class SolutionState(Enum):

    INVALID = "invalid"
    REACTIONS_UNSOLVABLE = "reactions unsolvable"
    MEMBERS_UNSOLVABLE = "members unsolvable"
    SOLVED = "solved"


@dataclass(frozen=True)
class Solution:

    """
    The outcome of solving a structure. Always built fresh, never changed afterwards.
    """

    state: SolutionState
    problems: tuple[Problem, ...] = ()
    reactions: Optional[dict[int, Vector]] = None
    member_forces: Optional[dict[int, float]] = None
    trace: str = ""

    @property
    def is_solved(self) -> bool:
        return self.state is SolutionState.SOLVED

    @property
    def critical_problems(self) -> list[Problem]:
        return [p for p in self.problems if p.critical]

    def member_state(self, member_id: int) -> str:

        """
        Classifies a member as in 'tension', 'compression' or 'unloaded'.
        """

        forces = self.member_forces or {}
        force = forces.get(member_id, 0.0)
        epsilon = utils_truss.FORCE_EPSILON * max(
            (abs(f) for f in forces.values()), default=0.0
        )
        if force > epsilon:
            return "tension"
        elif force < -1 * epsilon:
            return "compression"
        return "unloaded"

    def __repr__(self):
        repr_str = f"\n State: {self.state.value}"
        for problem in self.problems:
            flag = "[critical] " if problem.critical else ""
            repr_str += f"\n \t {flag}{problem.message}"
        if self.member_forces is not None:
            repr_str += (
                f"\n Axial forces are: "
                f"(positive = tension; negative = compression) \n \t {str(self.member_forces)}"
            )
        if self.reactions is not None:
            repr_str += (
                "\n Reaction forces are (horizontal, vertical) components (signs "
                "consistent with coordinate system): \n \t "
                + str({k: str(v) for k, v in self.reactions.items()})
            )
        return repr_str


def _describe_system(title: str, equations: list[Equation], sig_figs: int) -> list[str]:

    variables, a, b = utils_truss.assemble_linear_system(equations)
    return [
        f"{title}:",
        *[f"  {utils_truss.format_equation(eq, sig_figs)}" for eq in equations],
        f"  unknowns = {variables}",
        f"  A =\n{utils_truss.format_matrix(a, sig_figs)}",
        f"  B =\n{utils_truss.format_matrix(b, sig_figs)}",
    ]


def _describe_directions(structure: Structure, sig_figs: int) -> list[str]:

    lines = ["Member directions:"]
    for joint in structure.joints:
        for member in structure.get_all_members_connected_to_joint(joint):
            other = structure.get_other_joint(member, joint)
            direction = utils_truss.round_sigfig(
                structure.get_direction(member, joint), sig_figs
            )
            lines.append(f"  {joint.name} -> {other.name} [{member.id}]: {direction}")
    return lines


def solve(
    structure: Structure,
    trace: bool = False,
    sig_figs: int = utils_truss.DEFAULT_SIG_FIGS,
) -> Solution:

    """
    The main part of the program. Validates the structure, then finds the outside
    reaction forces, then the member forces, stopping at the first stage which fails.
    Never raises: every failure is reported as a critical `Problem` on the solution.

    If `trace` is set, the equations and matrices used are written out in `Solution.trace`.
    """

    lines = []
    problems = find_problems(structure)
    logger.debug("Validation found %d problem(s)", len(problems))

    if any(p.critical for p in problems):
        logger.info("Structure is invalid: %s", [p.message for p in problems])
        return Solution(SolutionState.INVALID, tuple(problems))

    if trace:
        lines += _describe_system(
            "Outside reaction forces", build_reaction_equations(structure), sig_figs
        )

    reactions = solve_reaction_forces(structure)
    if reactions is None:
        logger.info("Could not solve for outside reaction forces")
        problems.append(
            Problem(
                "Could not solve for outside reaction forces",
                True,
                ProblemKind.REACTIONS_UNSOLVABLE,
            )
        )
        return Solution(
            SolutionState.REACTIONS_UNSOLVABLE, tuple(problems), trace="\n".join(lines)
        )

    if trace:
        lines += _describe_directions(structure, sig_figs)
        lines += _describe_system(
            "Member forces", build_member_equations(structure, reactions), sig_figs
        )

    member_forces = solve_member_forces(structure, reactions)
    if member_forces is None:
        logger.info("Could not solve for member forces")
        problems.append(
            Problem(
                "Could not solve for member forces",
                True,
                ProblemKind.MEMBERS_UNSOLVABLE,
            )
        )
        return Solution(
            SolutionState.MEMBERS_UNSOLVABLE,
            tuple(problems),
            reactions=reactions,
            trace="\n".join(lines),
        )

    return Solution(
        SolutionState.SOLVED,
        tuple(problems),
        reactions=reactions,
        member_forces=member_forces,
        trace="\n".join(lines),
    )


# READING AND WRITING STRUCTURES


def _is_number(value) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # an integer too large to be a float
        return False


def _parse_id(value, what: str) -> int:
    if not _is_number(value) or not float(value).is_integer():
        raise BadStructureError(f"{what} must have a whole number `id`, got {value!r}.")
    return int(value)


def _parse_vector(value, what: str) -> Vector:
    if not isinstance(value, dict) or not all(_is_number(value.get(k)) for k in "xy"):
        raise BadStructureError(f"{what} must be an object with numeric x and y.")
    return Vector(float(value["x"]), float(value["y"]))


def _parse_joint(item) -> Joint:

    if not isinstance(item, dict):
        raise BadStructureError("Each joint must be an object.")
    joint_id = _parse_id(item.get("id"), "Each joint")
    if not isinstance(item.get("name"), str):
        raise BadStructureError(f"Joint {joint_id} must have a string `name`.")
    support = item.get("support")
    if not isinstance(support, dict) or not all(
        isinstance(support.get(k), bool) for k in "xy"
    ):
        raise BadStructureError(f"Joint {joint_id} must have boolean support x and y.")

    return Joint(
        joint_id,
        item["name"],
        _parse_vector(item.get("pos"), f"Position of joint {joint_id}"),
        _parse_vector(item.get("load"), f"Load on joint {joint_id}"),
        Support(support["x"], support["y"]),
    )


def _parse_member(item) -> Member:

    if not isinstance(item, dict):
        raise BadStructureError("Each member must be an object.")
    member_id = _parse_id(item.get("id"), "Each member")
    joint_ids = item.get("jointIds")
    if not isinstance(joint_ids, list) or len(joint_ids) != 2:
        raise BadStructureError(f"Member {member_id} must have two `jointIds`.")

    return Member(
        member_id,
        tuple(_parse_id(i, f"Joints of member {member_id}") for i in joint_ids),
    )


def parse_structure(data) -> Optional[Structure]:

    """
    Builds a structure from its serialized form (as produced by `structure_to_dict`).
    Returns None, rather than raising, if the data is malformed in any way.
    """

    try:
        if not isinstance(data, dict) or not all(
            isinstance(data.get(k), list) for k in ("joints", "members")
        ):
            raise BadStructureError("Expected `joints` and `members` arrays.")
        return Structure(
            tuple(_parse_joint(item) for item in data["joints"]),
            tuple(_parse_member(item) for item in data["members"]),
        )
    except BadStructureError as e:
        logger.info("Could not parse structure: %s", e)
        return None


def parse_structure_json(text: str) -> Optional[Structure]:
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, RecursionError) as e:
        logger.info("Could not parse structure: %s", e)
        return None
    return parse_structure(data)


def structure_to_dict(structure: Structure) -> dict:
    return {
        "joints": [
            {
                "id": j.id,
                "name": j.name,
                "pos": {"x": j.position.x, "y": j.position.y},
                "load": {"x": j.load.x, "y": j.load.y},
                "support": {"x": j.support.x, "y": j.support.y},
            }
            for j in structure.joints
        ],
        "members": [
            {"id": m.id, "jointIds": list(m.joint_ids)} for m in structure.members
        ],
    }


def dump_structure_to_json(
    structure: Structure,
    filedir: Optional[str] = None,
    filename: Optional[str] = None,
    solution: Optional[Solution] = None,
) -> str:

    """
    Writes the structure, with the results of `solution` if given, to a JSON file
    which can be read back with `load_structure_from_json()`. Returns the file path.
    """

    # create the output directory if specified and it does not already exist
    if filedir is not None:
        if not os.path.exists(filedir):
            os.mkdir(filedir)

    filename = filename or "structure.json"
    if not re.search(r"\.json$", filename):
        filename += ".json"
    out_file_dir = os.path.join("" if filedir is None else filedir, filename)

    json_dict = structure_to_dict(structure)
    if solution is not None:
        json_dict["results"] = {
            "state": solution.state.value,
            "problems": [p.message for p in solution.problems],
            "reactions": {
                str(k): {"x": v.x, "y": v.y} for k, v in solution.reactions.items()
            }
            if solution.reactions is not None
            else None,
            "memberForces": {str(k): v for k, v in solution.member_forces.items()}
            if solution.member_forces is not None
            else None,
        }

    with open(out_file_dir, "w") as f:
        json.dump(json_dict, f, indent=4)

    return out_file_dir


def load_structure_from_json(file: str) -> Optional[Structure]:

    """
    Reads a structure from a JSON file written by `dump_structure_to_json()`.
    Any stored results are ignored; solve the structure again to get them.
    """

    with open(file) as json_file:
        return parse_structure_json(json_file.read())


# DIAGRAM


def draw_support(x: float, y: float, size: float, support: Support) -> None:

    """
    Draw a support symbol at a joint: a triangle resting on the ground for a pin,
    with wheels underneath if only one reaction component is supplied. A support
    giving only a horizontal reaction is drawn turned onto its side.
    """

    a = -math.pi / 2 if support.x and not support.y else 0.0
    rot = lambda _p: utils_truss.rotate_coords(_p, x, y, a)  # noqa

    ground = y - size / 3 if support.count() == 2 else y - 8 / 15 * size
    pts = [
        (x, y),
        (x - size / (3 * math.sqrt(3)), y - size / 3),
        (x + size / (3 * math.sqrt(3)), y - size / 3),
        (x, y),
        (x - size / 2, ground),
        (x + size / 2, ground),
    ]
    xtl, ytl = map(list, zip(*map(rot, pts)))

    plt.plot(xtl[0:4], ytl[0:4], linewidth=1, color="black", zorder=0)  # triangle
    plt.plot(xtl[4:], ytl[4:], linewidth=1, color="black", zorder=0)  # ground

    if support.count() == 1:
        for x_pos in (x - size / 6, x + size / 6):  # wheels
            centre = rot((x_pos, y - 13 / 30 * size))
            plt.gca().add_patch(plt.Circle(centre, size / 10, color="black"))


def plot_diagram(structure: Structure, solution: Solution, **kwargs):

    """
    Create a matplotlib output image showing the structure, annotated with load and
    reaction arrows, supports, and members coloured by tension/compression.
    Returns the axes drawn on.
    """

    sig_figs: int = kwargs.get("sig_figs", utils_truss.DEFAULT_SIG_FIGS)
    show_reactions: bool = kwargs.get("show_reactions", True)
    forces_on_members: bool = kwargs.get("forces_on_members", True)
    show: bool = kwargs.get("show", True)

    # drawing dimensions are relative to 10% of the average member length
    lengths = [
        (structure.get_joint(b).position - structure.get_joint(a).position).length()
        for a, b in (m.joint_ids for m in structure.members)
    ]
    LEN = (np.average(lengths) if lengths else 1.0) * 0.1 or 0.1

    plt.cla()
    plt.grid(False)

    for member in structure.members:
        first, second = (structure.get_joint(i) for i in member.joint_ids)
        colour = {"tension": "#0000FF", "compression": "#FF0000"}.get(
            solution.member_state(member.id), "#ABABAB"
        )
        plt.plot(
            [first.position.x, second.position.x],
            [first.position.y, second.position.y],
            color=colour,
            zorder=0,
        )
        if forces_on_members and solution.member_forces is not None:
            mid = (first.position + second.position).scale(0.5)
            force = solution.member_forces[member.id]
            plt.text(
                mid.x,
                mid.y,
                str(utils_truss.round_sigfig(force, sig_figs)),
                ha="center",
                va="center",
            )

    for joint in structure.joints:
        x, y = joint.position
        plt.plot(x, y, "o", color="black", markersize=5)
        plt.plot(x, y, "o", color="white", markersize=3.5)
        plt.text(x + LEN / 3, y + LEN / 3, joint.name)

        if joint.support.count():
            draw_support(x, y, LEN * 0.9, joint.support)

        # draw arrows of fixed length to show the direction of each force
        arrows = [(joint.load, "black")]
        if show_reactions and solution.reactions is not None:
            arrows.append((solution.reactions[joint.id], "red"))
        for force, colour in arrows:
            if force.length() == 0:
                continue
            d = force.with_length(LEN)
            plt.arrow(
                x, y, d.x, d.y,
                head_width=LEN / 5,
                head_length=LEN / 4,
                facecolor=colour,
                edgecolor=colour,
            )

    plt.axis("equal")
    plt.xlabel("$x$-position")
    plt.ylabel("$y$-position")
    ax = plt.gca()
    ax.spines["right"].set_visible(False)
    ax.spines["top"].set_visible(False)

    if show:
        plt.show()

    return ax


def solve_and_plot(structure: Structure, **kwargs) -> Solution:
    """
    Solves a structure, then shows it on a matplotlib plot.
    """
    solution = solve(structure)
    plot_diagram(structure, solution, **kwargs)
    return solution


DEFAULT_STRUCTURE = Structure(
    joints=(
        Joint(6, "A", Vector(0, 0), Vector(0, 0), Support(True, True)),
        Joint(7, "B", Vector(5, 0), Vector(0, -250)),
        Joint(8, "C", Vector(10, 0), Vector(0, 0), Support(False, True)),
        Joint(11, "D", Vector(3, 3), Vector(0, -1000)),
        Joint(14, "E", Vector(7, 3), Vector(0, -500)),
    ),
    members=(
        Member(18, (6, 7)),
        Member(19, (6, 11)),
        Member(20, (7, 8)),
        Member(21, (7, 11)),
        Member(22, (7, 14)),
        Member(23, (8, 14)),
        Member(24, (11, 14)),
    ),
)


if __name__ == "__main__":

    logging.basicConfig(level=logging.DEBUG)
    my_solution = solve(DEFAULT_STRUCTURE, trace=True)
    print(my_solution.trace)
    print(my_solution)
    plot_diagram(DEFAULT_STRUCTURE, my_solution)
