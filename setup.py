from setuptools import find_packages, setup

setup(
    name="infra_scan",
    version="0.1.0",
    packages=find_packages(exclude=["infra_scan_tests*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.6",
        "python-dotenv",
        "hvac",
        "requests",
        "boto3",
        "botocore",
        "keyring",
        "keyrings.cryptfile",
        "google-cloud-secret-manager",
        "google-cloud-storage",
        "google-cloud-kms",
        "google-auth",
        "cryptography",
    ],
    extras_require={"dev": ["pytest"]},
)
