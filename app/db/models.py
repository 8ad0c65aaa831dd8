# app/db/models.py
from __future__ import annotations

from datetime import datetime, date as date_type, timezone
import enum
from typing import Any, Optional

from sqlalchemy import (
    String, Integer, Float, ForeignKey, Text, DateTime, Date, Enum,
    UniqueConstraint, Boolean, JSON, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base


def utcnow() -> datetime:
    # SQLite ne conserve pas le fuseau : on stocke de l'UTC naïf partout
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum_values(e):
    return [m.value for m in e]


# =========================================================
#                     ENUMS
# =========================================================
class UserRole(str, enum.Enum):
    admin = "admin"
    telepro = "telepro"


class TypeProduit(str, enum.Enum):
    destratification = "destratification"
    pression = "pression"
    matelas_isolants = "matelas_isolants"


class LeadStatus(str, enum.Enum):
    nouveau = "nouveau"
    nrp = "nrp"
    a_rappeler = "a_rappeler"
    pas_interesse = "pas_interesse"
    trash = "trash"


# Étapes du workflow produit (clé, libellé, couleur)
PRODUIT_STATUTS: list[tuple[str, str, str]] = [
    ("nouveau", "Nouveau", "#10b981"),
    ("a_rappeler", "À rappeler", "#f59e0b"),
    ("mail_infos_envoye", "Mail infos envoyé", "#3b82f6"),
    ("infos_recues", "Infos reçues", "#6366f1"),
    ("devis_envoye", "Devis envoyé", "#8b5cf6"),
    ("devis_signe", "Devis signé", "#ec4899"),
    ("pose_prevue", "Pose prévue", "#14b8a6"),
    ("pose_terminee", "Pose terminée", "#0ea5e9"),
    ("coffrac", "Coffrac", "#a855f7"),
    ("termine", "Terminé", "#6b7280"),
]
DEFAULT_STATUT = "nouveau"

# Champs techniques attendus par type de produit
TECHNICAL_FIELDS: dict[TypeProduit, tuple[str, ...]] = {
    TypeProduit.destratification: (
        "hauteur_max",
        "m2_hors_bureau",
        "type_chauffage",
        "nb_chauffage",
        "puissance_totale",
        "marque_chauffage",
        "nb_zones",
    ),
    TypeProduit.pression: (
        "nb_groupes",
        "puissance_totale_pression",
    ),
    TypeProduit.matelas_isolants: (
        "chaufferie",
        "calorifuge",
        "ps_estimes",
    ),
}


# =========================================================
#                     UTILISATEURS
# =========================================================
class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    username: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=20, values_callable=_enum_values),
        default=UserRole.telepro,
    )

    # Restriction de connexion à une IP donnée
    allowed_ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    ip_restriction_enabled: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


# =========================================================
#                     CLIENTS (BASE + PRODUITS)
# =========================================================
class ClientBase(Base):
    """
    Fiche entreprise partagée par tous les produits d'un client.
    """
    __tablename__ = "client_base"

    id: Mapped[int] = mapped_column(primary_key=True)

    # --- Bénéficiaire ---
    societe: Mapped[str] = mapped_column(String(255), index=True)
    adresse: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ville: Mapped[str | None] = mapped_column(String(120), nullable=True)
    code_postal: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    telephone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    siret: Mapped[str | None] = mapped_column(String(14), nullable=True, index=True)

    # --- Site des travaux ---
    nom_site: Mapped[str | None] = mapped_column(String(255), nullable=True)
    adresse_travaux: Mapped[str | None] = mapped_column(String(255), nullable=True)
    ville_travaux: Mapped[str | None] = mapped_column(String(120), nullable=True)
    code_postal_travaux: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # --- Signataire ---
    nom_signataire: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fonction: Mapped[str | None] = mapped_column(String(120), nullable=True)
    telephone_signataire: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mail_signataire: Mapped[str | None] = mapped_column(String(180), nullable=True)

    # --- Contact sur site ---
    nom_contact_site: Mapped[str | None] = mapped_column(String(120), nullable=True)
    prenom_contact_site: Mapped[str | None] = mapped_column(String(120), nullable=True)
    fonction_contact_site: Mapped[str | None] = mapped_column(String(120), nullable=True)
    mail_contact_site: Mapped[str | None] = mapped_column(String(180), nullable=True)
    telephone_contact_site: Mapped[str | None] = mapped_column(String(32), nullable=True)

    code_naf: Mapped[str | None] = mapped_column(String(10), nullable=True, index=True)
    donnees_enrichies: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    # Lead d'origine (conversion), conservé pour les statistiques
    converted_from_lead_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, index=True)

    produits: Mapped[list["ClientProduit"]] = relationship(
        back_populates="client_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ClientProduit.type_produit",
    )
    comments: Mapped[list["Comment"]] = relationship(
        back_populates="client_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    appointments: Mapped[list["Appointment"]] = relationship(
        back_populates="client_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    documents: Mapped[list["ClientDocument"]] = relationship(
        back_populates="client_base",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


# Colonnes "communes" modifiables via PATCH /clients/{id}
CLIENT_BASE_FIELDS: tuple[str, ...] = (
    "societe",
    "adresse",
    "ville",
    "code_postal",
    "telephone",
    "siret",
    "nom_site",
    "adresse_travaux",
    "ville_travaux",
    "code_postal_travaux",
    "nom_signataire",
    "fonction",
    "telephone_signataire",
    "mail_signataire",
    "nom_contact_site",
    "prenom_contact_site",
    "fonction_contact_site",
    "mail_contact_site",
    "telephone_contact_site",
    "code_naf",
    "donnees_enrichies",
)


class ClientProduit(Base):
    __tablename__ = "clients_produits"
    __table_args__ = (
        UniqueConstraint("client_base_id", "type_produit", name="uq_client_produit_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    client_base_id: Mapped[int] = mapped_column(
        ForeignKey("client_base.id", ondelete="CASCADE"),
        index=True,
        nullable=False,
    )
    type_produit: Mapped[TypeProduit] = mapped_column(
        Enum(TypeProduit, native_enum=False, length=32, values_callable=_enum_values),
        index=True,
    )
    donnees_techniques: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    statut: Mapped[str] = mapped_column(String(50), default=DEFAULT_STATUT, index=True)

    assigned_to: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    client_base: Mapped["ClientBase"] = relationship(back_populates="produits")


# =========================================================
#                     LEADS
# =========================================================
class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(primary_key=True)
    first_name: Mapped[str] = mapped_column(String(120))
    last_name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str | None] = mapped_column(String(180), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    mobile_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)

    status: Mapped[LeadStatus] = mapped_column(
        Enum(LeadStatus, native_enum=False, length=20, values_callable=_enum_values),
        default=LeadStatus.nouveau,
        index=True,
    )
    assigned_to: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


# =========================================================
#                     COMMENTAIRES / RDV
# =========================================================
# Un commentaire ou un RDV est rattaché soit à un lead, soit à un client.
class Comment(Base):
    __tablename__ = "comments"

    id: Mapped[int] = mapped_column(primary_key=True)
    lead_id: Mapped[int | None] = mapped_column(
        ForeignKey("leads.id", ondelete="CASCADE"), index=True, nullable=True
    )
    client_base_id: Mapped[int | None] = mapped_column(
        ForeignKey("client_base.id", ondelete="CASCADE"), index=True, nullable=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    content: Mapped[str] = mapped_column(Text())
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    client_base: Mapped[Optional["ClientBase"]] = relationship(back_populates="comments")


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_date_time", "date", "time"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    lead_id: Mapped[int | None] = mapped_column(
        ForeignKey("leads.id", ondelete="CASCADE"), index=True, nullable=True
    )
    client_base_id: Mapped[int | None] = mapped_column(
        ForeignKey("client_base.id", ondelete="CASCADE"), index=True, nullable=True
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), index=True
    )

    title: Mapped[str] = mapped_column(String(255))
    date: Mapped[date_type] = mapped_column(Date)
    time: Mapped[str] = mapped_column(String(5))  # "HH:MM"
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text(), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    client_base: Mapped[Optional["ClientBase"]] = relationship(back_populates="appointments")


# =========================================================
#                     DOCUMENTS CLIENTS
# =========================================================
class ClientDocument(Base):
    __tablename__ = "client_documents"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_base_id: Mapped[int] = mapped_column(
        ForeignKey("client_base.id", ondelete="CASCADE"), index=True
    )
    file_name: Mapped[str] = mapped_column(String(255))
    # Nom du fichier stocké sous UPLOAD_DIR (clé disque)
    file_path: Mapped[str] = mapped_column(String(255))
    file_type: Mapped[str | None] = mapped_column(String(120), nullable=True)
    file_size: Mapped[int] = mapped_column(Integer, default=0)
    uploaded_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True
    )
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    client_base: Mapped["ClientBase"] = relationship(back_populates="documents")


# =========================================================
#                     STATUTS (workflow produits)
# =========================================================
class Statut(Base):
    __tablename__ = "statuts"

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    label: Mapped[str] = mapped_column(String(120))
    color: Mapped[str] = mapped_column(String(20))
    ordre: Mapped[int] = mapped_column(Integer, default=0)
    active: Mapped[bool] = mapped_column(Boolean, default=True)


# =========================================================
#                     DIMENSIONNEMENT (PAC)
# =========================================================
class TemperatureBaseData(Base):
    __tablename__ = "temperature_base_data"
    __table_args__ = (
        Index("ix_temperature_zone_altitude", "zone", "altitude_min"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    zone: Mapped[str] = mapped_column(String(2))
    altitude_min: Mapped[int] = mapped_column(Integer)
    altitude_max: Mapped[int] = mapped_column(Integer)
    temperature: Mapped[float] = mapped_column(Float)


class CoefficientGData(Base):
    __tablename__ = "coefficient_g_data"

    id: Mapped[int] = mapped_column(primary_key=True)
    typologie: Mapped[str] = mapped_column(String(120), unique=True, index=True)
    coefficient: Mapped[float] = mapped_column(Float)
    description: Mapped[str | None] = mapped_column(String(255), nullable=True)


class DimensioningNote(Base):
    __tablename__ = "dimensioning_notes"

    id: Mapped[int] = mapped_column(primary_key=True)
    client_base_id: Mapped[int] = mapped_column(
        ForeignKey("client_base.id", ondelete="CASCADE"), index=True
    )
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )

    # --- Logement ---
    surface_chauffee: Mapped[float] = mapped_column(Float)
    hauteur_plafond: Mapped[float] = mapped_column(Float)
    zone_climatique: Mapped[str] = mapped_column(String(2))
    altitude: Mapped[int] = mapped_column(Integer)
    typologie: Mapped[str] = mapped_column(String(120))
    temperature_confort: Mapped[float] = mapped_column(Float)

    # --- Pompe à chaleur ---
    marque: Mapped[str] = mapped_column(String(120))
    reference_exterieur: Mapped[str | None] = mapped_column(String(120), nullable=True)
    reference_hydraulique: Mapped[str | None] = mapped_column(String(120), nullable=True)
    modele: Mapped[str] = mapped_column(String(120))
    puissance_nominale: Mapped[float] = mapped_column(Float)
    efficacite_saisonniere: Mapped[float | None] = mapped_column(Float, nullable=True)
    puissance_tbase: Mapped[float] = mapped_column(Float)
    temperature_arret: Mapped[float | None] = mapped_column(Float, nullable=True)
    compatibilite_emetteurs: Mapped[str | None] = mapped_column(String(120), nullable=True)
    regime_fonctionnement: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # --- Résultats ---
    volume: Mapped[float] = mapped_column(Float)
    temperature_base: Mapped[float] = mapped_column(Float)
    coefficient_g: Mapped[float] = mapped_column(Float)
    delta_t: Mapped[float] = mapped_column(Float)
    deperditions: Mapped[float] = mapped_column(Float)
    taux_couverture: Mapped[float] = mapped_column(Float)

    pdf_path: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
