"""Stand-in parsers for tests: the real FQL grammar lives outside this package."""


def path_parser(query_string):
    """
    "users/alice" becomes two literals and "*" becomes an All marker.
    """
    components = []
    for part in query_string.split("/"):
        if not part:
            continue
        if part == "*":
            components.append({"type": "all"})
        else:
            components.append({"type": "literal", "value": part})
    return components


class TableParser:
    """Parser returning canned raw components for known query strings."""

    def __init__(self, table):
        self.table = table

    def __call__(self, query_string):
        if query_string in self.table:
            return self.table[query_string]
        return path_parser(query_string)
