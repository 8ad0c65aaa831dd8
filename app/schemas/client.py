# app/schemas/client.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ClientBaseFields(BaseModel):
    societe: Optional[str] = None
    adresse: Optional[str] = None
    ville: Optional[str] = None
    code_postal: Optional[str] = None
    telephone: Optional[str] = None
    siret: Optional[str] = None

    nom_site: Optional[str] = None
    adresse_travaux: Optional[str] = None
    ville_travaux: Optional[str] = None
    code_postal_travaux: Optional[str] = None

    nom_signataire: Optional[str] = None
    fonction: Optional[str] = None
    telephone_signataire: Optional[str] = None
    mail_signataire: Optional[str] = None

    nom_contact_site: Optional[str] = None
    prenom_contact_site: Optional[str] = None
    fonction_contact_site: Optional[str] = None
    mail_contact_site: Optional[str] = None
    telephone_contact_site: Optional[str] = None

    code_naf: Optional[str] = None
    donnees_enrichies: Optional[Dict[str, Any]] = None


class ProduitIn(BaseModel):
    type_produit: Optional[str] = None
    donnees_techniques: Optional[Dict[str, Any]] = None
    statut: Optional[str] = None
    assigned_to: Optional[int] = None


class ClientCreate(ClientBaseFields):
    """
    Deux formes acceptées :
      - produits: [{type_produit, donnees_techniques, statut, assigned_to}, ...]
      - ancienne forme : type_produit + donnees_techniques (ou champs
        techniques à plat, ex. hauteur_max, nb_groupes...)
    """
    model_config = ConfigDict(extra="allow")

    produits: Optional[List[ProduitIn]] = None
    type_produit: Optional[str] = None
    donnees_techniques: Optional[Dict[str, Any]] = None
    statut: Optional[str] = None
    assigned_to: Optional[int] = None


class ClientUpdate(ClientBaseFields):
    pass


class ProduitUpdate(BaseModel):
    type_produit: Optional[str] = None
    donnees_techniques: Optional[Dict[str, Any]] = None
    statut: Optional[str] = None
    assigned_to: Optional[int] = None


class AssignIn(BaseModel):
    userId: Optional[int] = None


class BulkAssignIn(BaseModel):
    clientIds: List[int] = Field(default_factory=list)
    userId: Optional[int] = None


class BulkDeleteProduitsIn(BaseModel):
    produitIds: List[int] = Field(default_factory=list)


class DuplicateIn(BaseModel):
    type_produit: Optional[str] = None


class ConvertLeadIn(BaseModel):
    type_produit: Optional[str] = None
    donnees_techniques: Optional[Dict[str, Any]] = None
    societe: Optional[str] = None


class ClientCommentIn(BaseModel):
    content: Optional[str] = None


class ClientAppointmentIn(BaseModel):
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None
