"""hotelmate_sync: sincronização de mensagens do chat do hotel."""

__version__ = "0.1.0"
