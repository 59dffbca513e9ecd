"""
Builds a small bridge, solves it, and shows the working and the diagram.
Run from the repository root after `pip install -e .`
"""

import logging

import truss

logging.basicConfig(level=logging.INFO)

#############################################################
###  Example 1: Building a structure with the builders    ###
#############################################################

my_truss = (
    truss.Structure()
    .add_joints([(0, 0), (100, 0), (200, 0), (50, 80), (150, 80)])
    .add_members(["AB", "BC", "AD", "BD", "BE", "CE", "DE"])
    .add_loads([("D", 0, -100), ("E", 20, -50)])
    .add_supports([("A", "pin"), ("C", "roller")])
)

my_solution = truss.solve(my_truss, trace=True, sig_figs=3)

# show the results in text form
print(my_solution.trace)
print(my_solution)

#############################################################
###  Example 2: Fixing a problem reported by validation   ###
#############################################################

broken = truss.Structure(
    my_truss.joints, my_truss.members + (truss.Member(99, (1, 2)),)
)
broken_solution = truss.solve(broken)

for problem in broken_solution.problems:
    print(problem.message, "(critical)" if problem.critical else "")
    if problem.fix is not None:
        broken = problem.apply_fix(broken)

assert truss.solve(broken) == truss.solve(my_truss)

# save it, read it back, and draw it
path = truss.dump_structure_to_json(my_truss, filename="bridge", solution=my_solution)
truss.solve_and_plot(truss.load_structure_from_json(path))
