from typing import AbstractSet, List, Sequence


def simplify_path(path: Sequence[str], within_project: AbstractSet[str]) -> List[str]:
    """Collapses each run of within-project packages to its last element.

    The last element of a run is the hop closest to the vulnerable package,
    which is the only one that matters for remediation.
    """
    simplified = []
    buffered = None

    for name in path:
        if name in within_project:
            buffered = name
            continue
        if buffered is not None:
            simplified.append(buffered)
            buffered = None
        simplified.append(name)

    if buffered is not None:
        simplified.append(buffered)
    return simplified
