# models/company.py

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from db.base import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    prefecture = Column(String)
    address = Column(String)
    incorporated_at = Column(Date, nullable=True)          # None = not yet known
    houjin_bangou = Column(String, nullable=False, default="", index=True)  # not unique
    listing_status = Column(String)
    capital = Column(String)
    revenue = Column(String)
    url = Column(String, nullable=False, default="")       # "" = not yet known
    tel = Column(String, nullable=False, default="")       # "" = not yet known
    employee_number = Column(String)
    memo = Column(Text, nullable=False, default="")

    industry_classification = relationship(
        "IndustryClassification",
        back_populates="company",
        uselist=False,
        cascade="all, delete-orphan",
    )


class IndustryClassification(Base):
    __tablename__ = "industry_classifications"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False, unique=True)
    industry = Column(String, nullable=False, default="")

    company = relationship("Company", back_populates="industry_classification")
