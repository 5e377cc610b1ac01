"""
String similarity used for best-effort catalog suggestions.

Both functions compare lowercase forms, so "Redis" and "redis" are identical.
"""


def levenshtein_distance(a: str, b: str) -> int:
    """
    Classic Levenshtein distance over the lowercase forms of two strings.

    Insertions, deletions and substitutions each cost 1. Computed with the
    dynamic-programming table kept to two rows.
    """
    a = a.lower()
    b = b.lower()
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous_row = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current_row = [i]
        for j, cb in enumerate(b, 1):
            insertion = current_row[j - 1] + 1
            deletion = previous_row[j] + 1
            substitution = previous_row[j - 1] + (ca != cb)
            current_row.append(min(insertion, deletion, substitution))
        previous_row = current_row
    return previous_row[-1]


def similarity(a: str, b: str) -> float:
    """
    Normalized similarity in [0, 1]: (maxLen - distance) / maxLen.

    Two empty strings are fully similar.
    """
    a = a.lower()
    b = b.lower()
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return (max_len - levenshtein_distance(a, b)) / max_len
