"""Read every row of a query, one page at a time.

Protean querysets return a bounded page by default; background jobs that need
the whole matching set walk it with ``fetch_all``.
"""

PAGE_SIZE = 100


def fetch_all(query, page_size: int = PAGE_SIZE) -> list:
    items = []
    offset = 0
    while True:
        page = query.offset(offset).limit(page_size).all()
        items.extend(page.items)
        if not page.has_next:
            return items
        offset += page_size
