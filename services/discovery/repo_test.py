"""Tests for discovery repository."""

import json

import pytest
from unittest.mock import AsyncMock, patch

from db.models.cell import DiscoveryCell, QuerySaturation
from services.discovery.errors import CellNotFoundError, CellStateError
from services.discovery.grid_tiler import Bounds, VirtualCell


CELL_ROW = {
    "id": 1,
    "grid_id": 7,
    "sw_lat": 43.0,
    "sw_lng": -80.0,
    "ne_lat": 43.1,
    "ne_lng": -79.9,
    "depth": 0,
    "parent_cell_id": None,
    "is_leaf": True,
    "status": "searched",
    "result_count": 12,
    "query_saturation": '[{"query": "farm market", "count": 12, "in_bounds": 12, "hit_cap": false}]',
    "last_searched_at": None,
    "bounds_key": "43.000000_-80.000000",
    "leads_found": 4,
}


@pytest.mark.no_db
class TestClaimCell:
    """Tests for claim_cell."""

    @pytest.mark.asyncio
    async def test_claimed(self):
        from services.discovery import repo

        mock_conn = AsyncMock()
        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = mock_conn
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.claim_cell = AsyncMock(
                    return_value={"previous_status": "unsearched", "claimed": True}
                )

                result = await repo.claim_cell(1, ("unsearched", "searched"))

                assert result.claimed is True
                assert result.previous_status == "unsearched"
                mock_queries.claim_cell.assert_called_once_with(
                    mock_conn, cell_id=1, expected_statuses=["unsearched", "searched"]
                )

    @pytest.mark.asyncio
    async def test_not_claimed_reports_current_status(self):
        from services.discovery import repo

        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.claim_cell = AsyncMock(
                    return_value={"previous_status": "searching", "claimed": False}
                )

                result = await repo.claim_cell(1, ("unsearched", "searched"))

                assert result.claimed is False
                assert result.previous_status == "searching"

    @pytest.mark.asyncio
    async def test_missing_cell(self):
        from services.discovery import repo

        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.claim_cell = AsyncMock(return_value=None)

                with pytest.raises(CellNotFoundError):
                    await repo.claim_cell(404, ("unsearched",))


@pytest.mark.no_db
class TestGetCell:
    """Tests for get_cell_by_id."""

    @pytest.mark.asyncio
    async def test_parses_jsonb_saturation(self):
        from services.discovery import repo

        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.get_cell_by_id = AsyncMock(return_value=CELL_ROW)

                cell = await repo.get_cell_by_id(1)

                assert cell.status == "searched"
                assert cell.query_saturation == [
                    QuerySaturation(query="farm market", count=12, in_bounds=12, hit_cap=False)
                ]


@pytest.mark.no_db
class TestUpdateCellSearchResult:
    """Tests for update_cell_search_result."""

    @pytest.mark.asyncio
    async def test_writes_result_and_bumps_grid_total(self):
        from services.discovery import repo

        mock_conn = AsyncMock()
        entries = [QuerySaturation(query="farm market", count=60, in_bounds=25, hit_cap=True)]
        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = mock_conn
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.update_cell_search_result = AsyncMock()
                mock_queries.add_grid_leads_found = AsyncMock()

                await repo.update_cell_search_result(
                    cell_id=1, grid_id=7, status="saturated", result_count=25,
                    query_saturation=entries, leads_found=3,
                )

                kwargs = mock_queries.update_cell_search_result.call_args.kwargs
                assert kwargs["status"] == "saturated"
                assert json.loads(kwargs["query_saturation"]) == [
                    {"query": "farm market", "count": 60, "in_bounds": 25, "hit_cap": True}
                ]
                mock_queries.add_grid_leads_found.assert_called_once_with(mock_conn, grid_id=7, new_leads=3)

    @pytest.mark.asyncio
    async def test_no_new_leads_leaves_grid_total(self):
        from services.discovery import repo

        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.update_cell_search_result = AsyncMock()
                mock_queries.add_grid_leads_found = AsyncMock()

                await repo.update_cell_search_result(
                    cell_id=1, grid_id=7, status="searched", result_count=0,
                    query_saturation=[], leads_found=0,
                )

                mock_queries.add_grid_leads_found.assert_not_called()


@pytest.mark.no_db
class TestInsertChildCells:
    """Tests for insert_child_cells."""

    @pytest.mark.asyncio
    async def test_inserts_children_and_marks_parent(self):
        from services.discovery import repo

        parent = DiscoveryCell.model_validate(CELL_ROW)
        quadrants = [
            Bounds(sw_lat=43.0, sw_lng=-80.0, ne_lat=43.05, ne_lng=-79.95),
            Bounds(sw_lat=43.0, sw_lng=-79.95, ne_lat=43.05, ne_lng=-79.9),
        ]
        mock_conn = AsyncMock()
        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = mock_conn
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.lock_cell = AsyncMock(return_value={"id": 1, "is_leaf": True, "status": "saturated"})
                mock_queries.insert_child_cell = AsyncMock(side_effect=[11, 12])
                mock_queries.mark_cell_not_leaf = AsyncMock()

                child_ids = await repo.insert_child_cells(parent, quadrants)

                assert child_ids == [11, 12]
                first = mock_queries.insert_child_cell.call_args_list[0].kwargs
                assert first["depth"] == 1
                assert first["parent_cell_id"] == 1
                assert first["bounds_key"] == "43.000000_-80.000000"
                mock_queries.mark_cell_not_leaf.assert_called_once_with(mock_conn, cell_id=1)

    @pytest.mark.asyncio
    async def test_concurrent_split_returns_existing_children(self):
        from services.discovery import repo

        parent = DiscoveryCell.model_validate(CELL_ROW)
        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.lock_cell = AsyncMock(return_value={"id": 1, "is_leaf": False, "status": "saturated"})
                mock_queries.get_child_cells = AsyncMock(return_value=[{"id": 21}, {"id": 22}])
                mock_queries.insert_child_cell = AsyncMock()

                assert await repo.insert_child_cells(parent, []) == [21, 22]
                mock_queries.insert_child_cell.assert_not_called()

    @pytest.mark.asyncio
    async def test_parent_claimed_since_read_is_rejected(self):
        from services.discovery import repo

        parent = DiscoveryCell.model_validate({**CELL_ROW, "status": "unsearched"})
        quadrants = [Bounds(sw_lat=43.0, sw_lng=-80.0, ne_lat=43.05, ne_lng=-79.95)]
        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.lock_cell = AsyncMock(return_value={"id": 1, "is_leaf": True, "status": "searching"})
                mock_queries.insert_child_cell = AsyncMock()
                mock_queries.mark_cell_not_leaf = AsyncMock()

                with pytest.raises(CellStateError):
                    await repo.insert_child_cells(parent, quadrants)

                mock_queries.insert_child_cell.assert_not_called()
                mock_queries.mark_cell_not_leaf.assert_not_called()


@pytest.mark.no_db
class TestActivateRootCell:
    """Tests for activate_root_cell and insert_root_cells."""

    @pytest.mark.asyncio
    async def test_existing_key_returns_existing_id(self):
        from services.discovery import repo

        bounds = Bounds(sw_lat=43.0, sw_lng=-80.0, ne_lat=43.1, ne_lng=-79.9)
        with patch.object(repo, "get_conn") as mock_get_conn:
            mock_get_conn.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.insert_root_cell = AsyncMock(return_value=None)
                mock_queries.get_root_cell_by_key = AsyncMock(return_value=CELL_ROW)

                assert await repo.activate_root_cell(7, bounds, "43.000000_-80.000000") == (1, True)

    @pytest.mark.asyncio
    async def test_bulk_insert_counts_new_rows(self):
        from services.discovery import repo

        cells = [
            VirtualCell(sw_lat=43.0, sw_lng=-80.0, ne_lat=43.1, ne_lng=-79.9, key="43.000000_-80.000000"),
            VirtualCell(sw_lat=43.1, sw_lng=-80.0, ne_lat=43.2, ne_lng=-79.9, key="43.100000_-80.000000"),
        ]
        with patch.object(repo, "get_transaction") as mock_tx:
            mock_tx.return_value.__aenter__.return_value = AsyncMock()
            with patch.object(repo, "queries") as mock_queries:
                mock_queries.insert_root_cell = AsyncMock(side_effect=[5, None])

                assert await repo.insert_root_cells(7, cells) == 1
