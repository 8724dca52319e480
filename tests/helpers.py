from continuum.db.unit_of_work import UnitOfWork


async def stored_cards(session, stream_id):
    """Карточки потока прямо из хранилища"""
    async with UnitOfWork(session) as uow:
        return await uow.cards.get_by_stream(stream_id)


def editable_count(cards):
    return sum(1 for card in cards if card.is_editable)


def versions(cards):
    return [card.version for card in cards]
