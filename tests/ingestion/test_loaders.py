import pandas as pd
import pytest

from lead_acquisition.ingestion.loaders import UnsupportedFileTypeError, load_search_requests


@pytest.fixture()
def sample_dataframe():
    return pd.DataFrame(
        [
            {
                "Name": "",
                "Job Title": "Chief Financial Officer",
                "State": "Oregon",
                "Count": 25,
                "Min Age": 30,
                "Max Age": 55,
                "Customer": "acme",
            },
            {
                "Name": "Grace",
                "Job Title": "",
                "State": "Texas",
                "Count": "",
                "Min Age": "",
                "Max Age": "",
                "Customer": "",
            },
            {
                "Name": "",
                "Job Title": "",
                "State": "",
                "Count": "",
                "Min Age": "",
                "Max Age": "",
                "Customer": "",
            },
        ]
    )


def test_load_search_requests_from_csv_with_synonyms(sample_dataframe, tmp_path):
    csv_path = tmp_path / "requests.csv"
    sample_dataframe.to_csv(csv_path, index=False)

    requests = load_search_requests(csv_path, default_count=10)

    assert len(requests) == 2
    first, second = requests
    assert first.query.title == "Chief Financial Officer"
    assert first.query.region == "Oregon"
    assert first.requested_count == 25
    assert first.customer_id == "acme"
    assert (first.age_filter.min_age, first.age_filter.max_age) == (30, 55)
    assert second.query.name == "Grace"
    assert second.requested_count == 10
    assert second.customer_id == "anonymous"
    assert second.age_filter is None


def test_load_search_requests_from_excel_with_mapping(sample_dataframe, tmp_path):
    excel_path = tmp_path / "requests.xlsx"
    sample_dataframe.rename(columns={"State": "Territory"}).to_excel(excel_path, index=False)

    requests = load_search_requests(excel_path, column_mapping={"region": "Territory"})

    assert [request.query.region for request in requests] == ["Oregon", "Texas"]


def test_rows_with_only_one_age_bound_get_open_filter(tmp_path):
    csv_path = tmp_path / "requests.tsv"
    csv_path.write_text("title\tage_max\tcount\nOwner\t40\t3\n", encoding="utf-8")

    [request] = load_search_requests(csv_path)

    assert (request.age_filter.min_age, request.age_filter.max_age) == (0, 40)
    assert request.requested_count == 3


def test_load_search_requests_rejects_unknown_extension(tmp_path):
    path = tmp_path / "requests.txt"
    path.write_text("title\nOwner\n", encoding="utf-8")

    with pytest.raises(UnsupportedFileTypeError):
        load_search_requests(path)
