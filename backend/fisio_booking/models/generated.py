from sqlalchemy import Column, Enum, Float, ForeignKey, Integer, Text, text

from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


SERVICE_TYPES = (
    'rehabilitacion',
    'hidroterapia',
    'hidroterapia_rehabilitacion',
    'rehabilitacion_domicilio',
)

BOOKING_STATES = (
    'pendiente',
    'pendiente_confirmacion',
    'confirmada',
    'completada',
    'cancelada',
)


class Profiles(Base):
    __tablename__ = 'profiles'

    full_name = Column(Text, nullable=False)
    role = Column(Enum('client', 'admin', name='profile_role'), nullable=False, server_default=text("'client'"))
    id = Column(Integer, primary_key=True)
    email = Column(Text)
    phone = Column(Text)
    preferred_language = Column(Text, nullable=False, server_default=text("'es'"))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    dogs = relationship('Dogs', back_populates='owner')
    bookings = relationship('Bookings', back_populates='client')


class Dogs(Base):
    __tablename__ = 'dogs'

    owner_id = Column(ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    breed = Column(Text)
    birth_date = Column(Text)
    notes = Column(Text)

    owner = relationship('Profiles', back_populates='dogs')
    bookings = relationship('Bookings', back_populates='dog')


class Spaces(Base):
    __tablename__ = 'spaces'

    name = Column(Text, nullable=False)
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='space')


class Services(Base):
    __tablename__ = 'services'

    name = Column(Text, nullable=False)
    service_type = Column(Enum(*SERVICE_TYPES, name='service_type'), nullable=False)
    # Home visits take their duration from the chosen start/end instead
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    id = Column(Integer, primary_key=True)
    description = Column(Text)

    bookings = relationship('Bookings', back_populates='service')


class AvailableTimeSlots(Base):
    __tablename__ = 'available_time_slots'

    date = Column(Text, nullable=False, index=True)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    is_active = Column(Integer, nullable=False, server_default=text('1'))
    admin_only = Column(Integer, nullable=False, server_default=text('0'))
    id = Column(Integer, primary_key=True)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))


class Bookings(Base):
    __tablename__ = 'bookings'

    client_id = Column(ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    dog_id = Column(ForeignKey('dogs.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id'), nullable=False)
    space_id = Column(ForeignKey('spaces.id'))
    date_start = Column(Text, nullable=False, index=True)  # "YYYY-MM-DDTHH:MM:SS"
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    status = Column(Enum(*BOOKING_STATES, name='booking_status'), nullable=False, server_default=text("'pendiente'"))
    is_home_visit = Column(Integer, nullable=False, server_default=text('0'))
    blocks_center = Column(Integer, nullable=False, server_default=text('0'))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    id = Column(Integer, primary_key=True)
    home_address = Column(Text)
    home_end_time = Column(Text)
    spaces_display = Column(Text)
    notes = Column(Text)
    cancellation_surcharge = Column(Float)
    surcharge_reason = Column(Text)
    cancel_reason = Column(Text)

    client = relationship('Profiles', back_populates='bookings')
    dog = relationship('Dogs', back_populates='bookings')
    service = relationship('Services', back_populates='bookings')
    space = relationship('Spaces', back_populates='bookings')


class BookingDayLocks(Base):
    """One row per date; bumped first by every atomic insert for that date."""

    __tablename__ = 'booking_day_locks'

    day = Column(Text, primary_key=True)
    version = Column(Integer, nullable=False, server_default=text('0'))
