def paginate_query(query, page, limit, max_limit=100):
    page = max(int(page) if page else 1, 1)
    limit = min(max(int(limit) if limit else 20, 1), max_limit)

    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    total_pages = (total + limit - 1) // limit

    return items, {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
        "has_next": page < total_pages,
    }
