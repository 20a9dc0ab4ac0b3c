"""Persistence for events in the submission database."""

from sqlalchemy import Column, Integer, String

from ...domain.agent import agent_factory
from ...domain.event import Event, event_factory
from .models import Base
from .util import FriendlyJSON, UTCDateTime


class DBEvent(Base):  # type: ignore
    """Database representation of an :class:`.Event`."""

    __tablename__ = 'event'

    event_id = Column(String(40), primary_key=True)
    event_type = Column(String(255), nullable=False)
    creator = Column(FriendlyJSON)
    creator_id = Column(String(40), index=True)
    created = Column(UTCDateTime)
    data = Column(FriendlyJSON)
    submission_id = Column(Integer, index=True)
    draft_id = Column(Integer, index=True)

    @classmethod
    def from_event(cls, event: Event) -> 'DBEvent':
        return cls(event_id=event.event_id,
                   event_type=event.event_type,
                   creator=event.creator,
                   creator_id=str(event.creator.native_id),
                   created=event.created,
                   data=event.get_data(),
                   submission_id=event.submission_id,
                   draft_id=event.draft_id)

    def to_event(self) -> Event:
        """
        Instantiate an :class:`.Event` using event data from this instance.

        Returns
        -------
        :class:`.Event`

        """
        creator = self.creator
        if isinstance(creator, dict):
            creator = agent_factory(**creator)
        data = dict(self.data or {})
        data['committed'] = True     # Since we're loading from the DB.
        return event_factory(
            self.event_type,
            self.created,
            creator=creator,
            submission_id=self.submission_id,
            draft_id=self.draft_id,
            **data
        )
