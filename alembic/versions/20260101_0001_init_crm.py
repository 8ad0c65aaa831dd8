from alembic import op
import sqlalchemy as sa

revision = "20260101_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("username", sa.String(length=120), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="telepro"),
        sa.Column("allowed_ip", sa.String(length=64), nullable=True),
        sa.Column("ip_restriction_enabled", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "client_base",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("societe", sa.String(length=255), nullable=False),
        sa.Column("adresse", sa.String(length=255), nullable=True),
        sa.Column("ville", sa.String(length=120), nullable=True),
        sa.Column("code_postal", sa.String(length=10), nullable=True),
        sa.Column("telephone", sa.String(length=32), nullable=True),
        sa.Column("siret", sa.String(length=14), nullable=True),
        sa.Column("nom_site", sa.String(length=255), nullable=True),
        sa.Column("adresse_travaux", sa.String(length=255), nullable=True),
        sa.Column("ville_travaux", sa.String(length=120), nullable=True),
        sa.Column("code_postal_travaux", sa.String(length=10), nullable=True),
        sa.Column("nom_signataire", sa.String(length=255), nullable=True),
        sa.Column("fonction", sa.String(length=120), nullable=True),
        sa.Column("telephone_signataire", sa.String(length=32), nullable=True),
        sa.Column("mail_signataire", sa.String(length=180), nullable=True),
        sa.Column("nom_contact_site", sa.String(length=120), nullable=True),
        sa.Column("prenom_contact_site", sa.String(length=120), nullable=True),
        sa.Column("fonction_contact_site", sa.String(length=120), nullable=True),
        sa.Column("mail_contact_site", sa.String(length=180), nullable=True),
        sa.Column("telephone_contact_site", sa.String(length=32), nullable=True),
        sa.Column("code_naf", sa.String(length=10), nullable=True),
        sa.Column("donnees_enrichies", sa.JSON, nullable=True),
        sa.Column("converted_from_lead_id", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_client_base_societe", "client_base", ["societe"])
    op.create_index("ix_client_base_code_postal", "client_base", ["code_postal"])
    op.create_index("ix_client_base_siret", "client_base", ["siret"])
    op.create_index("ix_client_base_code_naf", "client_base", ["code_naf"])
    op.create_index("ix_client_base_updated_at", "client_base", ["updated_at"])

    op.create_table(
        "clients_produits",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("client_base_id", sa.Integer, sa.ForeignKey("client_base.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type_produit", sa.String(length=32), nullable=False),
        sa.Column("donnees_techniques", sa.JSON, nullable=True),
        sa.Column("statut", sa.String(length=50), nullable=False, server_default="nouveau"),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
        sa.UniqueConstraint("client_base_id", "type_produit", name="uq_client_produit_type"),
    )
    op.create_index("ix_clients_produits_client_base_id", "clients_produits", ["client_base_id"])
    op.create_index("ix_clients_produits_type_produit", "clients_produits", ["type_produit"])
    op.create_index("ix_clients_produits_statut", "clients_produits", ["statut"])
    op.create_index("ix_clients_produits_assigned_to", "clients_produits", ["assigned_to"])

    op.create_table(
        "leads",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=180), nullable=True),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("mobile_phone", sa.String(length=32), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="nouveau"),
        sa.Column("assigned_to", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_leads_status", "leads", ["status"])
    op.create_index("ix_leads_assigned_to", "leads", ["assigned_to"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("lead_id", sa.Integer, sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=True),
        sa.Column("client_base_id", sa.Integer, sa.ForeignKey("client_base.id", ondelete="CASCADE"), nullable=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_comments_lead_id", "comments", ["lead_id"])
    op.create_index("ix_comments_client_base_id", "comments", ["client_base_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("lead_id", sa.Integer, sa.ForeignKey("leads.id", ondelete="CASCADE"), nullable=True),
        sa.Column("client_base_id", sa.Integer, sa.ForeignKey("client_base.id", ondelete="CASCADE"), nullable=True),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("date", sa.Date, nullable=False),
        sa.Column("time", sa.String(length=5), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_appointments_lead_id", "appointments", ["lead_id"])
    op.create_index("ix_appointments_client_base_id", "appointments", ["client_base_id"])
    op.create_index("ix_appointments_user_id", "appointments", ["user_id"])
    op.create_index("ix_appointments_date_time", "appointments", ["date", "time"])

    op.create_table(
        "client_documents",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("client_base_id", sa.Integer, sa.ForeignKey("client_base.id", ondelete="CASCADE"), nullable=False),
        sa.Column("file_name", sa.String(length=255), nullable=False),
        sa.Column("file_path", sa.String(length=255), nullable=False),
        sa.Column("file_type", sa.String(length=120), nullable=True),
        sa.Column("file_size", sa.Integer, nullable=False, server_default="0"),
        sa.Column("uploaded_by", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("uploaded_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_client_documents_client_base_id", "client_documents", ["client_base_id"])
    op.create_index("ix_client_documents_uploaded_by", "client_documents", ["uploaded_by"])

    op.create_table(
        "statuts",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("key", sa.String(length=50), nullable=False),
        sa.Column("label", sa.String(length=120), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=False),
        sa.Column("ordre", sa.Integer, nullable=False, server_default="0"),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_statuts_key", "statuts", ["key"], unique=True)

    op.create_table(
        "temperature_base_data",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("zone", sa.String(length=2), nullable=False),
        sa.Column("altitude_min", sa.Integer, nullable=False),
        sa.Column("altitude_max", sa.Integer, nullable=False),
        sa.Column("temperature", sa.Float, nullable=False),
    )
    op.create_index("ix_temperature_zone_altitude", "temperature_base_data", ["zone", "altitude_min"])

    op.create_table(
        "coefficient_g_data",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("typologie", sa.String(length=120), nullable=False),
        sa.Column("coefficient", sa.Float, nullable=False),
        sa.Column("description", sa.String(length=255), nullable=True),
    )
    op.create_index("ix_coefficient_g_data_typologie", "coefficient_g_data", ["typologie"], unique=True)

    op.create_table(
        "dimensioning_notes",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("client_base_id", sa.Integer, sa.ForeignKey("client_base.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Integer, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("surface_chauffee", sa.Float, nullable=False),
        sa.Column("hauteur_plafond", sa.Float, nullable=False),
        sa.Column("zone_climatique", sa.String(length=2), nullable=False),
        sa.Column("altitude", sa.Integer, nullable=False),
        sa.Column("typologie", sa.String(length=120), nullable=False),
        sa.Column("temperature_confort", sa.Float, nullable=False),
        sa.Column("marque", sa.String(length=120), nullable=False),
        sa.Column("reference_exterieur", sa.String(length=120), nullable=True),
        sa.Column("reference_hydraulique", sa.String(length=120), nullable=True),
        sa.Column("modele", sa.String(length=120), nullable=False),
        sa.Column("puissance_nominale", sa.Float, nullable=False),
        sa.Column("efficacite_saisonniere", sa.Float, nullable=True),
        sa.Column("puissance_tbase", sa.Float, nullable=False),
        sa.Column("temperature_arret", sa.Float, nullable=True),
        sa.Column("compatibilite_emetteurs", sa.String(length=120), nullable=True),
        sa.Column("regime_fonctionnement", sa.String(length=120), nullable=True),
        sa.Column("volume", sa.Float, nullable=False),
        sa.Column("temperature_base", sa.Float, nullable=False),
        sa.Column("coefficient_g", sa.Float, nullable=False),
        sa.Column("delta_t", sa.Float, nullable=False),
        sa.Column("deperditions", sa.Float, nullable=False),
        sa.Column("taux_couverture", sa.Float, nullable=False),
        sa.Column("pdf_path", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=True),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_dimensioning_notes_client_base_id", "dimensioning_notes", ["client_base_id"])

def downgrade():
    op.drop_table("dimensioning_notes")
    op.drop_table("coefficient_g_data")
    op.drop_table("temperature_base_data")
    op.drop_table("statuts")
    op.drop_table("client_documents")
    op.drop_table("appointments")
    op.drop_table("comments")
    op.drop_table("leads")
    op.drop_table("clients_produits")
    op.drop_table("client_base")
    op.drop_table("users")
