from setuptools import setup, find_packages

setup(
    name="palate-collectif",
    version="0.1.0",
    description="Palate Collectif - wine tasting events, ratings and shared tasting notes.",
    author="",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.9",
    install_requires=[
        "streamlit>=1.50.0",
        "supabase>=2.4.0",
        "postgrest>=0.16.0",
        "pandas>=2.0.0",
        "pydantic>=2.5.0",
        "plotly>=5.18.0",
        "python-dotenv>=1.0.0",
        "psycopg[binary]>=3.1.0",
        "psycopg-pool>=3.2.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
)
