from valerie.models.recording import Recording

__all__ = ['Recording']
