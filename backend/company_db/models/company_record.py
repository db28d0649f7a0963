from sqlalchemy import Column, String, Float, Integer, Text, DateTime
from ..core.db import Base


class CompanyRecordRow(Base):
    __tablename__ = "company_records"

    # uuid4 string generated at assembly time; upsert key
    id = Column(String(36), primary_key=True)
    company_name = Column(String, nullable=True, index=True)
    website = Column(String, nullable=True)
    doc_url = Column(String, nullable=True)
    date_created = Column(DateTime(timezone=True), nullable=False)

    arr_run_rate = Column(Float, nullable=True)
    carr = Column(Float, nullable=True)
    revenue_2024 = Column(Float, nullable=True)
    revenue_2023 = Column(Float, nullable=True)
    revenue_2022 = Column(Float, nullable=True)
    monthly_burn = Column(Float, nullable=True)
    cash = Column(Float, nullable=True)
    runway = Column(Float, nullable=True)
    raising = Column(Float, nullable=True)
    raised = Column(Float, nullable=True)
    last_round_valuation = Column(Float, nullable=True)

    acv = Column(Float, nullable=True)
    acv_2 = Column(Float, nullable=True)
    customer_count = Column(Integer, nullable=True)
    customer_count_2 = Column(Integer, nullable=True)
    logo_churn_annual = Column(Float, nullable=True)

    cac = Column(Float, nullable=True)
    payback_period = Column(Float, nullable=True)
    ltv_to_cac = Column(Float, nullable=True)
    gross_margin = Column(Float, nullable=True)
    saas_recurring_percent = Column(Float, nullable=True)
    nrr = Column(Float, nullable=True)

    team_size = Column(Integer, nullable=True)
    year_founded = Column(Integer, nullable=True)
    location = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    competition = Column(Text, nullable=True)
    revenue_notes = Column(Text, nullable=True)
    funding_notes = Column(Text, nullable=True)
    good = Column(Text, nullable=True)
    challenges = Column(Text, nullable=True)
    needs_action = Column(Text, nullable=True)
